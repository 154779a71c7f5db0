import httpx
import pytest

from image_gateway.domain.entity.image import TextToImageRequest
from image_gateway.domain.exceptions import (
    ImageGenerationError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderNotImplementedError,
    UnknownModelError,
)
from image_gateway.domain.service.model_registry import DEFAULT_MODEL_TABLE, ModelRegistry
from image_gateway.infrastructure.image.bfl_provider import BlackForestLabsProvider
from image_gateway.infrastructure.image.pending import PENDING_INTEGRATIONS

from conftest import FakeProvider, mock_http_client, with_fresh_dispatcher


def test_registry_resolves_every_default_model():
    registry = ModelRegistry()

    for provider, models in DEFAULT_MODEL_TABLE.items():
        for model in models:
            assert registry.resolve_provider(model) == provider

    assert registry.resolve_provider("not-a-model") is None
    assert "flux-pro" in registry
    assert len(registry) == sum(len(models) for models in DEFAULT_MODEL_TABLE.values())


def test_registry_rejects_duplicate_model_keys():
    with pytest.raises(ValueError, match="registered for both"):
        ModelRegistry({"a": ["shared"], "b": ["shared"]})


def test_registry_lists_models_per_provider():
    registry = ModelRegistry({"a": ["m1", "m2"], "b": ["m3"]})

    assert registry.models_for_provider("a") == ["m1", "m2"]
    assert registry.models_for_provider("missing") == []
    assert registry.provider_names() == ["a", "b"]


@pytest.mark.asyncio
async def test_generate_routes_to_provider():
    provider = FakeProvider("bfl")
    dispatcher = with_fresh_dispatcher({"bfl": provider})

    response = await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="flux-pro"))

    assert response.image_url == "https://img.example/bfl/1.png"
    assert provider.calls[0].model == "flux-pro"


@pytest.mark.asyncio
async def test_unknown_model_makes_no_network_call():
    # Setup
    client, requests = mock_http_client(lambda request: httpx.Response(200, json={"id": "x"}))
    dispatcher = with_fresh_dispatcher({"bfl": BlackForestLabsProvider("key", http_client=client)})

    # Execute
    with pytest.raises(UnknownModelError) as exc_info:
        await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="flux-9000"))

    # Verify
    assert "Unknown model: flux-9000" in str(exc_info.value)
    assert exc_info.value.model == "flux-9000"
    assert requests == []


@pytest.mark.asyncio
async def test_unconfigured_provider_makes_no_network_call():
    client, requests = mock_http_client(lambda request: httpx.Response(200, json={"id": "x"}))
    dispatcher = with_fresh_dispatcher({"bfl": BlackForestLabsProvider("key", http_client=client)})

    with pytest.raises(ProviderNotConfiguredError) as exc_info:
        await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="ideogram-v3"))

    assert exc_info.value.provider == "ideogram"
    assert "Provider not configured: ideogram" in str(exc_info.value)
    assert requests == []


@pytest.mark.asyncio
async def test_pending_provider_is_refused():
    dispatcher = with_fresh_dispatcher({"midjourney": PENDING_INTEGRATIONS["midjourney"]})

    with pytest.raises(ProviderNotImplementedError) as exc_info:
        await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="midjourney"))

    assert exc_info.value.model == "midjourney"
    assert str(exc_info.value) == (
        "Image generation failed for midjourney: "
        "[midjourney] Midjourney requires Discord bot integration"
    )


@pytest.mark.asyncio
async def test_adapter_errors_keep_their_type_and_gain_the_model():
    error = ProviderError("bfl", "quota exceeded", status_code=429)
    dispatcher = with_fresh_dispatcher({"bfl": FakeProvider("bfl", error=error)})

    with pytest.raises(ProviderError) as exc_info:
        await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="flux-pro"))

    assert exc_info.value.status_code == 429
    assert exc_info.value.model == "flux-pro"
    assert str(exc_info.value) == "Image generation failed for flux-pro: [bfl] quota exceeded"
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_unexpected_adapter_errors_are_wrapped():
    dispatcher = with_fresh_dispatcher({"bfl": FakeProvider("bfl", error=RuntimeError("socket closed"))})

    with pytest.raises(ImageGenerationError) as exc_info:
        await dispatcher.generate_image(TextToImageRequest(prompt="a fox", model="flux-pro"))

    assert str(exc_info.value) == "Image generation failed for flux-pro: [bfl] socket closed"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_supported_models_follow_configured_providers():
    dispatcher = with_fresh_dispatcher(
        {"bfl": FakeProvider("bfl"), "luma": PENDING_INTEGRATIONS["luma"]}
    )

    assert dispatcher.is_model_supported("flux-pro")
    assert dispatcher.is_model_supported("luma-photon")
    assert not dispatcher.is_model_supported("dall-e-3")
    assert not dispatcher.is_model_supported("not-a-model")
    assert set(dispatcher.get_supported_models()) == set(
        DEFAULT_MODEL_TABLE["bfl"] + DEFAULT_MODEL_TABLE["luma"]
    )
    assert dispatcher.get_models_by_provider("openai") == []
    assert dispatcher.get_provider_for_model("dall-e-3") == "openai"
    assert dispatcher.provider_status() == {"bfl": "ready", "luma": "pending"}
