"""Edit Images Use Cases - Application Layer

An edit sends each input image through the dispatcher as an image-to-image
request. A single edit charges one ``cost_per_use``; a batch edit charges
``cost_per_use`` per input image once at least one edit succeeded.
"""

import logging
import math
from typing import List, Optional

from ...domain.entity.generation import EditCommand, EditResult, GenerationJob, ImageEdit
from ...domain.entity.image import build_image_request
from ...domain.exceptions import (
    GenerationFailedError,
    ImageGenerationError,
    InsufficientCreditsError,
)
from ...domain.repository.credit_ledger import CreditLedger
from ...domain.repository.job_repository import JobRepository
from ...domain.service.dispatcher import ImageDispatcher

logger = logging.getLogger(__name__)

EDIT_TOOL_TYPE = "image-editor"
BATCH_EDIT_TOOL_TYPE = "image-editor-batch"
MAX_BATCH_EDIT_IMAGES = 10
MAX_REFERENCE_IMAGES = 5
EDIT_SIZE = 1024


def build_edit_prompt(
    instructions: str,
    reference_count: int = 0,
    negative_prompt: Optional[str] = None,
    strength: float = 0.7,
) -> str:
    """Annotate the edit instructions for the model."""
    prompt = instructions
    if reference_count > 0:
        prompt += (
            f". [Reference images provided: {reference_count} reference(s) "
            "to match style and composition]"
        )
    if negative_prompt:
        prompt += f". [Negative: {negative_prompt}]"
    prompt += f". [Edit strength: {math.floor(strength * 100 + 0.5)}%]"
    return prompt


class _EditUseCase:
    def __init__(
        self,
        dispatcher: ImageDispatcher,
        ledger: CreditLedger,
        jobs: JobRepository,
    ):
        self._dispatcher = dispatcher
        self._ledger = ledger
        self._jobs = jobs

    async def _check_balance(self, command: EditCommand) -> None:
        balance = await self._ledger.get_balance(command.user_id)
        if balance < command.total_cost:
            raise InsufficientCreditsError(required=command.total_cost, available=balance)

    async def _edit(self, command: EditCommand, prompt: str, image: bytes) -> str:
        request = build_image_request(
            prompt=prompt,
            model=command.model.api_model,
            width=EDIT_SIZE,
            height=EDIT_SIZE,
            negative_prompt=command.negative_prompt,
            input_image=image,
            strength=command.strength,
        )
        response = await self._dispatcher.generate_image(request)
        return response.image_url

    async def _settle(
        self,
        command: EditCommand,
        edits: List[ImageEdit],
        errors: List[str],
    ) -> EditResult:
        """Deduct the full cost, then record one job per edited image."""
        credits_remaining = await self._ledger.deduct(command.user_id, command.total_cost)
        logger.info(
            f"Deducted {command.total_cost} credits from user {command.user_id} "
            f"({len(edits)}/{len(command.images)} edits), remaining {credits_remaining}"
        )

        jobs: List[GenerationJob] = []
        for edit in edits:
            job = GenerationJob(
                user_id=command.user_id,
                model_id=command.model.id,
                tool_type=command.tool_type,
                prompt=command.instructions,
                image_url=edit.image_url,
            )
            try:
                jobs.append(await self._jobs.save(job))
            except Exception as e:
                logger.error(f"Failed to save edit job {job.id}: {e}", exc_info=True)

        return EditResult(
            edits=edits,
            credits_used=command.total_cost,
            credits_remaining=credits_remaining,
            jobs=jobs,
            errors=errors,
        )


class EditImageUseCase(_EditUseCase):
    """单图编辑用例"""

    async def execute(self, command: EditCommand) -> EditResult:
        """
        Raises:
            ValueError: the command holds more than one image
            InsufficientCreditsError: balance below ``cost_per_use``
            GenerationFailedError: the provider failed, nothing deducted
        """
        if len(command.images) != 1:
            raise ValueError("A single edit takes exactly one image")
        await self._check_balance(command)

        prompt = build_edit_prompt(
            command.instructions,
            reference_count=command.reference_count,
            negative_prompt=command.negative_prompt,
            strength=command.strength,
        )
        logger.info(
            f"Editing image with {command.model.api_model} for user {command.user_id} "
            f"(references={command.reference_count}, strength={command.strength})"
        )
        try:
            image_url = await self._edit(command, prompt, command.images[0])
        except ImageGenerationError as e:
            logger.error(f"Image edit failed for user {command.user_id}: {e}")
            raise GenerationFailedError([str(e)], message="Failed to edit image") from e

        return await self._settle(command, [ImageEdit(index=0, image_url=image_url)], [])


class BatchEditUseCase(_EditUseCase):
    """批量编辑用例: the same instructions for every image, one at a time."""

    async def execute(self, command: EditCommand) -> EditResult:
        """
        Raises:
            ValueError: more than ``MAX_BATCH_EDIT_IMAGES`` images
            InsufficientCreditsError: balance below the batch cost, nothing dispatched
            GenerationFailedError: every edit failed, nothing deducted
        """
        if len(command.images) > MAX_BATCH_EDIT_IMAGES:
            raise ValueError(f"Maximum {MAX_BATCH_EDIT_IMAGES} images allowed")
        await self._check_balance(command)

        edits: List[ImageEdit] = []
        errors: List[str] = []
        for index, image in enumerate(command.images):
            logger.info(f"Batch edit: processing image {index + 1}/{len(command.images)}")
            try:
                image_url = await self._edit(command, command.instructions, image)
            except ImageGenerationError as e:
                logger.warning(f"Edit of image {index + 1} failed: {e}")
                errors.append(f"Image {index + 1}: {e}")
                continue
            edits.append(ImageEdit(index=index, image_url=image_url))

        if not edits:
            raise GenerationFailedError(errors, message="Failed to edit any images")

        return await self._settle(command, edits, errors)
