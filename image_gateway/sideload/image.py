"""Sideload Image Handler

Handles 'image/*' JSON-RPC calls by delegating to the application use
cases. Domain errors become JSON-RPC errors with the gateway codes below.
"""

import logging
from typing import Optional

from ..application.usecase.edit_images import BatchEditUseCase, EditImageUseCase
from ..application.usecase.generate_images import GenerateImagesUseCase
from ..application.usecase.get_job import GetJobUseCase
from ..application.usecase.list_models import ListModelsUseCase
from ..domain.exceptions import (
    GenerationFailedError,
    InsufficientCreditsError,
    JobAccessDeniedError,
    JobNotFoundError,
    ModelNotFoundError,
)
from ..domain.repository.job_repository import JobRepository
from ..domain.repository.model_catalog import ModelCatalog
from ..infrastructure.payload import build_edit_command, build_generation_command
from .handler import INVALID_PARAMS, METHOD_NOT_FOUND, RpcError

logger = logging.getLogger(__name__)

# Application error codes (JSON-RPC reserves -32768..-32000)
INSUFFICIENT_CREDITS = 1001
MODEL_NOT_FOUND = 1002
GENERATION_FAILED = 1003
JOB_NOT_FOUND = 1004
ACCESS_DENIED = 1005


def to_rpc_error(error: Exception) -> Optional[RpcError]:
    """The JSON-RPC error for a domain error, None for anything else."""
    if isinstance(error, InsufficientCreditsError):
        return RpcError(
            INSUFFICIENT_CREDITS, str(error),
            {"required": error.required, "available": error.available},
        )
    if isinstance(error, ModelNotFoundError):
        return RpcError(MODEL_NOT_FOUND, str(error), {"model_id": error.model_id})
    if isinstance(error, JobNotFoundError):
        return RpcError(JOB_NOT_FOUND, str(error), {"job_id": error.job_id})
    if isinstance(error, JobAccessDeniedError):
        return RpcError(ACCESS_DENIED, str(error))
    if isinstance(error, ValueError):
        return RpcError(INVALID_PARAMS, str(error))
    if isinstance(error, GenerationFailedError):
        return RpcError(GENERATION_FAILED, str(error), {"details": error.details})
    return None


class ImageHandler:
    """Handles the image/* requests of sideload mode."""

    def __init__(
        self,
        generate_use_case: GenerateImagesUseCase,
        list_models_use_case: ListModelsUseCase,
        catalog: ModelCatalog,
        jobs: JobRepository,
        edit_use_case: Optional[EditImageUseCase] = None,
        batch_edit_use_case: Optional[BatchEditUseCase] = None,
        get_job_use_case: Optional[GetJobUseCase] = None,
    ):
        self._generate_use_case = generate_use_case
        self._list_models_use_case = list_models_use_case
        self._catalog = catalog
        self._jobs = jobs
        self._edit_use_case = edit_use_case
        self._batch_edit_use_case = batch_edit_use_case
        self._get_job_use_case = get_job_use_case

    async def handle_generate(self, params: dict) -> dict:
        """Handle an image/generate JSON-RPC request.

        Params:
        {
            "user_id": "u-1",
            "model_id": "flux-pro",
            "prompt": "a red fox",
            "number_of_images": 2,
            "width": 1024, "height": 1024,
            "input_image": "<base64>", "mask_image": "<base64>"
        }
        """
        try:
            command = await build_generation_command(params, self._catalog)
            result = await self._generate_use_case.execute(command)
        except Exception as e:
            self._raise_domain_error(e)
            raise

        return result.to_dict()

    async def handle_edit(self, params: dict) -> dict:
        """Handle image/edit.

        Params: user_id, model_id, instructions, image (base64), optional
        references (list of base64), strength and negative_prompt.
        """
        if self._edit_use_case is None:
            raise RpcError(METHOD_NOT_FOUND, "Image editing not configured")

        try:
            command = await build_edit_command(params, self._catalog)
            result = await self._edit_use_case.execute(command)
        except Exception as e:
            self._raise_domain_error(e)
            raise

        return result.to_dict()

    async def handle_batch_edit(self, params: dict) -> dict:
        """Handle image/batch-edit: same params as image/edit with ``images`` instead of ``image``."""
        if self._batch_edit_use_case is None:
            raise RpcError(METHOD_NOT_FOUND, "Batch editing not configured")

        try:
            command = await build_edit_command(params, self._catalog, batch=True)
            result = await self._batch_edit_use_case.execute(command)
        except Exception as e:
            self._raise_domain_error(e)
            raise

        return result.to_dict()

    async def handle_models(self, params: dict) -> dict:
        return {"models": await self._list_models_use_case.execute()}

    async def handle_jobs(self, params: dict) -> dict:
        user_id = params.get("user_id")
        if not user_id:
            raise RpcError(INVALID_PARAMS, "user_id is required")

        limit = params.get("limit") or 50
        jobs = await self._jobs.list_for_user(str(user_id), limit=int(limit))
        return {"jobs": [job.to_dict() for job in jobs]}

    async def handle_job(self, params: dict) -> dict:
        if self._get_job_use_case is None:
            raise RpcError(METHOD_NOT_FOUND, "Job lookup not configured")

        user_id = params.get("user_id")
        job_id = params.get("job_id")
        if not user_id or not job_id:
            raise RpcError(INVALID_PARAMS, "user_id and job_id are required")

        try:
            job = await self._get_job_use_case.execute(str(user_id), str(job_id))
        except Exception as e:
            self._raise_domain_error(e)
            raise

        return {"job": job.to_dict()}

    @staticmethod
    def _raise_domain_error(error: Exception) -> None:
        rpc_error = to_rpc_error(error)
        if rpc_error is not None:
            raise rpc_error from error

    def get_capabilities(self) -> dict:
        methods = ["image/generate", "image/models", "image/jobs"]
        if self._edit_use_case is not None:
            methods.append("image/edit")
        if self._batch_edit_use_case is not None:
            methods.append("image/batch-edit")
        if self._get_job_use_case is not None:
            methods.append("image/job")
        return {"methods": methods}
