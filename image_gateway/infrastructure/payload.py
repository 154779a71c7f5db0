"""Request payload parsing shared by the gRPC and sideload surfaces."""

import base64
import binascii
from typing import Any, List, Mapping, Optional

from ..application.usecase.edit_images import (
    BATCH_EDIT_TOOL_TYPE,
    EDIT_TOOL_TYPE,
    MAX_BATCH_EDIT_IMAGES,
    MAX_REFERENCE_IMAGES,
)
from ..domain.entity.generation import EditCommand, GenerationCommand
from ..domain.exceptions import ModelNotFoundError
from ..domain.repository.model_catalog import ModelCatalog

MAX_PROMPT_LENGTH = 1000
MAX_IMAGES_PER_REQUEST = 10
DEFAULT_TOOL_TYPE = "image-generation"
DEFAULT_STRENGTH = 0.7


def decode_image(value: Optional[str], field_name: str) -> Optional[bytes]:
    """Decode a base64 image field; data URIs are accepted as well."""
    if not value:
        return None
    if value.startswith("data:"):
        _, _, value = value.partition(",")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"{field_name} is not valid base64: {e}") from e


def _optional_int(payload: Mapping[str, Any], key: str, default: int) -> int:
    value = payload.get(key)
    if value in (None, "", 0):
        return default
    return int(value)


def _strength(payload: Mapping[str, Any]) -> float:
    value = payload.get("strength")
    if value in (None, ""):
        return DEFAULT_STRENGTH
    strength = float(value)
    if not 0.0 <= strength <= 1.0:
        raise ValueError("strength must be between 0 and 1")
    return strength


def _image_list(payload: Mapping[str, Any], key: str) -> List[str]:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list of base64 images")
    return value


async def build_generation_command(
    payload: Mapping[str, Any],
    catalog: ModelCatalog,
) -> GenerationCommand:
    """Validate a generation payload and resolve its catalog row.

    Raises:
        ValueError: missing or out-of-range fields
        ModelNotFoundError: the model id is unknown or inactive
    """
    user_id = str(payload.get("user_id") or "")
    if not user_id:
        raise ValueError("user_id is required")

    prompt = str(payload.get("prompt") or "").strip()
    if not prompt:
        raise ValueError("prompt is required")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValueError(f"prompt must be at most {MAX_PROMPT_LENGTH} characters")

    number_of_images = _optional_int(payload, "number_of_images", 1)
    if not 1 <= number_of_images <= MAX_IMAGES_PER_REQUEST:
        raise ValueError(f"number_of_images must be between 1 and {MAX_IMAGES_PER_REQUEST}")

    model_id = str(payload.get("model_id") or "")
    if not model_id:
        raise ValueError("model_id is required")
    model = await catalog.get_model(model_id)
    if model is None or not model.is_active:
        raise ModelNotFoundError(model_id)

    return GenerationCommand(
        user_id=user_id,
        model=model,
        prompt=prompt,
        tool_type=payload.get("tool_type") or DEFAULT_TOOL_TYPE,
        number_of_images=number_of_images,
        width=_optional_int(payload, "width", 1024),
        height=_optional_int(payload, "height", 1024),
        input_image=decode_image(payload.get("input_image"), "input_image"),
        mask_image=decode_image(payload.get("mask_image"), "mask_image"),
        strength=_strength(payload),
        negative_prompt=payload.get("negative_prompt") or None,
        style=payload.get("style") or None,
    )


async def build_edit_command(
    payload: Mapping[str, Any],
    catalog: ModelCatalog,
    *,
    batch: bool = False,
) -> EditCommand:
    """Validate an edit payload.

    A single edit reads ``image`` plus up to five ``references``; a batch
    edit reads one to ten ``images``.

    Raises:
        ValueError: missing or out-of-range fields
        ModelNotFoundError: the model id is unknown or inactive
    """
    user_id = str(payload.get("user_id") or "")
    if not user_id:
        raise ValueError("user_id is required")

    instructions = str(payload.get("instructions") or "").strip()
    if not instructions:
        raise ValueError("instructions is required")
    if len(instructions) > MAX_PROMPT_LENGTH:
        raise ValueError(f"Instructions too long (max {MAX_PROMPT_LENGTH} characters)")

    reference_count = 0
    if batch:
        encoded = _image_list(payload, "images")
        if not encoded:
            raise ValueError("No images provided")
        if len(encoded) > MAX_BATCH_EDIT_IMAGES:
            raise ValueError(f"Maximum {MAX_BATCH_EDIT_IMAGES} images allowed")
        images = []
        for i, value in enumerate(encoded):
            image = decode_image(value, f"images[{i}]")
            if image is None:
                raise ValueError(f"images[{i}] is empty")
            images.append(image)
    else:
        image = decode_image(payload.get("image"), "image")
        if image is None:
            raise ValueError("image is required")
        images = [image]
        references = _image_list(payload, "references")
        if len(references) > MAX_REFERENCE_IMAGES:
            raise ValueError(f"Maximum {MAX_REFERENCE_IMAGES} reference images allowed")
        for i, value in enumerate(references):
            decode_image(value, f"references[{i}]")
        reference_count = len(references)

    model_id = str(payload.get("model_id") or "")
    if not model_id:
        raise ValueError("model_id is required")
    model = await catalog.get_model(model_id)
    if model is None or not model.is_active:
        raise ModelNotFoundError(model_id)

    return EditCommand(
        user_id=user_id,
        model=model,
        instructions=instructions,
        images=images,
        tool_type=BATCH_EDIT_TOOL_TYPE if batch else EDIT_TOOL_TYPE,
        strength=_strength(payload),
        negative_prompt=payload.get("negative_prompt") or None,
        reference_count=reference_count,
    )
