"""Generate Images Use Case - Application Layer"""

import logging
from typing import List

from ...domain.entity.generation import GenerationCommand, GenerationJob, GenerationResult
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


class GenerateImagesUseCase:
    """批量生成图像用例

    Charges credits for a batch of images of one model. The whole requested
    cost is deducted once at least one image succeeded; a batch with no
    image costs nothing.
    """

    def __init__(
        self,
        dispatcher: ImageDispatcher,
        ledger: CreditLedger,
        jobs: JobRepository,
    ):
        self._dispatcher = dispatcher
        self._ledger = ledger
        self._jobs = jobs

    async def execute(self, command: GenerationCommand) -> GenerationResult:
        """执行批量生成

        Raises:
            InsufficientCreditsError: balance below the batch cost, nothing dispatched
            GenerationFailedError: every image failed, nothing deducted
        """
        # 1. 余额检查
        total_cost = command.total_cost
        balance = await self._ledger.get_balance(command.user_id)
        if balance < total_cost:
            raise InsufficientCreditsError(required=total_cost, available=balance)

        # 2. 逐张生成
        images: List[str] = []
        warnings: List[str] = []
        for i in range(1, command.number_of_images + 1):
            logger.info(
                f"Generating image {i}/{command.number_of_images} with {command.model.api_model} "
                f"for user {command.user_id}: '{command.prompt[:50]}'"
            )
            try:
                request = build_image_request(
                    prompt=command.prompt,
                    model=command.model.api_model,
                    width=command.width,
                    height=command.height,
                    style=command.style,
                    negative_prompt=command.negative_prompt,
                    input_image=command.input_image,
                    mask_image=command.mask_image,
                    strength=command.strength,
                )
                response = await self._dispatcher.generate_image(request)
            except ImageGenerationError as e:
                logger.warning(f"Image {i} failed: {e}")
                warnings.append(f"Image {i}: {e}")
                continue
            images.append(response.image_url)

        if not images:
            logger.error(f"All {command.number_of_images} image(s) failed for user {command.user_id}")
            raise GenerationFailedError(warnings)

        # 3. 扣费 (full batch cost, even when some images failed)
        credits_remaining = await self._ledger.deduct(command.user_id, total_cost)
        logger.info(
            f"Deducted {total_cost} credits from user {command.user_id} "
            f"({len(images)}/{command.number_of_images} images), remaining {credits_remaining}"
        )

        # 4. 保存记录
        jobs: List[GenerationJob] = []
        for image_url in images:
            job = GenerationJob(
                user_id=command.user_id,
                model_id=command.model.id,
                tool_type=command.tool_type,
                prompt=command.prompt,
                image_url=image_url,
            )
            try:
                jobs.append(await self._jobs.save(job))
            except Exception as e:
                logger.error(f"Failed to save generation job {job.id}: {e}", exc_info=True)

        return GenerationResult(
            images=images,
            credits_used=total_cost,
            credits_remaining=credits_remaining,
            jobs=jobs,
            warnings=warnings,
        )
