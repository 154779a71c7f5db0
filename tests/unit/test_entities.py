import pytest

from image_gateway.domain.entity.generation import (
    GenerationCommand,
    GenerationJob,
    GenerationResult,
    ModelRow,
)
from image_gateway.domain.entity.image import (
    ImageGenerationResponse,
    ImageToImageRequest,
    TextToImageRequest,
    VirtualTryOnRequest,
    build_image_request,
    data_uri,
    describe_mode,
)
from image_gateway.domain.exceptions import (
    GenerationTimeoutError,
    ImageGenerationError,
    InsufficientCreditsError,
    ProviderError,
)


def test_build_request_picks_variant_from_images():
    text = build_image_request("a fox", "flux-pro")
    img2img = build_image_request("a fox", "flux-kontext", input_image=b"person", strength=0.3)
    try_on = build_image_request("a shirt", "idm-vton", input_image=b"person", mask_image=b"garment")

    assert isinstance(text, TextToImageRequest)
    assert isinstance(img2img, ImageToImageRequest)
    assert img2img.strength == 0.3
    assert isinstance(try_on, VirtualTryOnRequest)
    assert (try_on.person_image, try_on.garment_image) == (b"person", b"garment")
    assert [describe_mode(r) for r in (text, img2img, try_on)] == [
        "text-to-image", "image-to-image", "virtual-try-on",
    ]


def test_mask_without_input_image_is_text_to_image():
    request = build_image_request("a fox", "flux-pro", mask_image=b"garment")

    assert isinstance(request, TextToImageRequest)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"prompt": "", "model": "flux-pro"},
        {"prompt": "a fox", "model": ""},
        {"prompt": "a fox", "model": "flux-pro", "width": 0},
        {"prompt": "a fox", "model": "flux-pro", "height": -5},
    ],
)
def test_invalid_request_fields(kwargs):
    with pytest.raises(ValueError):
        TextToImageRequest(**kwargs)


def test_strength_must_be_a_fraction():
    with pytest.raises(ValueError):
        ImageToImageRequest(prompt="a fox", model="flux-kontext", input_image=b"x", strength=1.5)


def test_request_size_defaults():
    assert TextToImageRequest(prompt="a fox", model="flux-pro").size == (1024, 1024)
    assert TextToImageRequest(prompt="a fox", model="flux-pro", width=512).size == (512, 1024)


def test_response_requires_url():
    with pytest.raises(ValueError):
        ImageGenerationResponse(image_url="")

    assert ImageGenerationResponse(image_url=data_uri(b"abc")).is_inline
    assert not ImageGenerationResponse(image_url="https://x/1.png").is_inline


def test_for_model_keeps_subclass_and_fields():
    error = GenerationTimeoutError("bfl", 30)

    enriched = error.for_model("flux-pro")

    assert type(enriched) is GenerationTimeoutError
    assert enriched.attempts == 30
    assert enriched.provider == "bfl"
    assert enriched.model == "flux-pro"
    assert str(enriched) == (
        "Image generation failed for flux-pro: [bfl] Generation did not complete after 30 poll attempts"
    )
    assert error.model is None


def test_provider_error_message():
    error = ProviderError("ideogram", "rate limited", status_code=429, body="{}")

    assert isinstance(error, ImageGenerationError)
    assert str(error) == "[ideogram] rate limited"


def test_insufficient_credits_message():
    error = InsufficientCreditsError(required=6, available=4)

    assert str(error) == "Insufficient credits. You have 4 but need 6"


def test_command_total_cost():
    row = ModelRow(id="m1", name="Model", provider="bfl", api_model="flux-pro", cost_per_use=3)

    command = GenerationCommand(user_id="u1", model=row, prompt="a fox", tool_type="image", number_of_images=4)

    assert command.total_cost == 12


def test_command_rejects_empty_batch():
    row = ModelRow(id="m1", name="Model", provider="bfl", api_model="flux-pro")

    with pytest.raises(ValueError):
        GenerationCommand(user_id="u1", model=row, prompt="a fox", tool_type="image", number_of_images=0)


def test_result_omits_empty_warnings():
    job = GenerationJob(user_id="u1", model_id="m1", tool_type="image", prompt="a fox", image_url="https://x/1.png")
    result = GenerationResult(images=["https://x/1.png"], credits_used=1, credits_remaining=9, jobs=[job])

    payload = result.to_dict()

    assert "warnings" not in payload
    assert payload["jobs"][0]["id"] == job.id

    with pytest.raises(ValueError):
        GenerationResult(images=[], credits_used=0, credits_remaining=0)
