import io
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from PIL import Image

from image_gateway.domain.entity.image import (
    ImageToImageRequest,
    TextToImageRequest,
    VirtualTryOnRequest,
)
from image_gateway.domain.exceptions import MalformedProviderResponseError, ProviderError
from image_gateway.infrastructure.image.openai_image_provider import (
    OpenAIImageProvider,
    get_valid_size,
)

from conftest import png_bytes


def _client(url="https://openai.example/1.png", b64_json=None, revised_prompt=None):
    client = MagicMock()
    result = SimpleNamespace(data=[SimpleNamespace(url=url, b64_json=b64_json, revised_prompt=revised_prompt)])
    client.images.generate = AsyncMock(return_value=result)
    client.images.edit = AsyncMock(return_value=result)
    return client


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (1920, 1080, "1792x1024"),
        (1080, 1920, "1024x1792"),
        (1500, 1000, "1024x1024"),
        (1024, 1024, "1024x1024"),
        (None, None, "1024x1024"),
    ],
)
def test_get_valid_size(width, height, expected):
    assert get_valid_size(width, height) == expected


def test_empty_key_without_client_is_rejected():
    with pytest.raises(ValueError):
        OpenAIImageProvider(api_key="")


@pytest.mark.asyncio
async def test_text_to_image_uses_generate():
    # Setup
    client = _client(revised_prompt="a detailed fox")
    provider = OpenAIImageProvider(api_key="sk-test", client=client)

    # Execute
    response = await provider.generate_image(
        TextToImageRequest(prompt="a fox", model="gpt-image-1", width=1920, height=1080)
    )

    # Verify
    assert response.image_url == "https://openai.example/1.png"
    assert response.revised_prompt == "a detailed fox"
    assert response.metadata == {"size": "1792x1024"}
    client.images.generate.assert_awaited_once_with(
        model="dall-e-3", prompt="a fox", n=1, size="1792x1024", quality="standard",
    )
    client.images.edit.assert_not_awaited()


@pytest.mark.asyncio
async def test_image_to_image_uploads_rgba_png(png_image):
    client = _client()
    provider = OpenAIImageProvider(api_key="sk-test", client=client)

    await provider.generate_image(
        ImageToImageRequest(prompt="make it blue", model="dall-e-3", input_image=png_image)
    )

    kwargs = client.images.edit.call_args.kwargs
    name, data, mime = kwargs["image"]
    assert (name, mime) == ("image.png", "image/png")
    assert Image.open(io.BytesIO(data)).mode == "RGBA"
    assert "mask" not in kwargs
    client.images.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_virtual_try_on_sends_garment_as_mask():
    client = _client()
    provider = OpenAIImageProvider(api_key="sk-test", client=client)

    await provider.generate_image(
        VirtualTryOnRequest(
            prompt="wear it", model="dall-e-3",
            person_image=png_bytes(), garment_image=png_bytes(color=(0, 0, 255)),
        )
    )

    kwargs = client.images.edit.call_args.kwargs
    assert kwargs["mask"][0] == "mask.png"


@pytest.mark.asyncio
async def test_falls_back_to_inline_base64():
    provider = OpenAIImageProvider(api_key="sk-test", client=_client(url=None, b64_json="QUJD"))

    response = await provider.generate_image(TextToImageRequest(prompt="a fox", model="dall-e-3"))

    assert response.image_url == "data:image/png;base64,QUJD"
    assert response.is_inline


@pytest.mark.asyncio
async def test_missing_image_is_malformed():
    client = MagicMock()
    client.images.generate = AsyncMock(return_value=SimpleNamespace(data=[]))
    provider = OpenAIImageProvider(api_key="sk-test", client=client)

    with pytest.raises(MalformedProviderResponseError):
        await provider.generate_image(TextToImageRequest(prompt="a fox", model="dall-e-3"))


@pytest.mark.asyncio
async def test_api_status_error_becomes_provider_error():
    client = MagicMock()
    response = httpx.Response(
        400, request=httpx.Request("POST", "https://api.openai.com/v1/images/generations")
    )
    client.images.generate = AsyncMock(
        side_effect=openai.APIStatusError("content policy violation", response=response, body=None)
    )
    provider = OpenAIImageProvider(api_key="sk-test", client=client)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate_image(TextToImageRequest(prompt="a fox", model="dall-e-3"))

    assert exc_info.value.status_code == 400
    assert exc_info.value.provider == "openai"
