"""Image Gateway gRPC Server - Infrastructure Layer

Every RPC takes and returns a ``google.protobuf.Struct``; the service layout
is described in ``proto/imagegateway.proto``. Handlers see plain dicts,
converted with ``json_format``. Struct numbers are doubles, so integer
fields arrive as floats.
"""

import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, Optional

import grpc
from grpc import aio
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from ... import __version__
from ...application.usecase.edit_images import BatchEditUseCase, EditImageUseCase
from ...application.usecase.generate_images import GenerateImagesUseCase
from ...application.usecase.get_job import GetJobUseCase
from ...application.usecase.list_models import ListModelsUseCase
from ...domain.exceptions import (
    GenerationFailedError,
    InsufficientCreditsError,
    JobAccessDeniedError,
    JobNotFoundError,
    ModelNotFoundError,
)
from ...domain.repository.job_repository import JobRepository
from ...domain.repository.model_catalog import ModelCatalog
from ...domain.service.dispatcher import ImageDispatcher
from ..payload import build_edit_command, build_generation_command

logger = logging.getLogger(__name__)

SERVICE_NAME = "imagegateway.ImageGateway"


def serialize(message: Dict[str, Any]) -> bytes:
    return json_format.ParseDict(message, Struct()).SerializeToString()


def deserialize(data: bytes) -> Dict[str, Any]:
    return json_format.MessageToDict(Struct.FromString(data))


class ImageGatewayServicer:
    """Image Gateway gRPC 服务端实现"""

    def __init__(
        self,
        generate_use_case: GenerateImagesUseCase,
        list_models_use_case: ListModelsUseCase,
        catalog: ModelCatalog,
        jobs: JobRepository,
        dispatcher: ImageDispatcher,
        edit_use_case: Optional[EditImageUseCase] = None,
        batch_edit_use_case: Optional[BatchEditUseCase] = None,
        get_job_use_case: Optional[GetJobUseCase] = None,
        debug: bool = False,
    ):
        """初始化服务端

        Args:
            generate_use_case: 批量生成图像用例
            list_models_use_case: 模型列表用例
            catalog: 模型目录
            jobs: 生成记录存储
            dispatcher: 图像分发服务 (for health reporting)
            edit_use_case: 单图编辑用例（可选）
            batch_edit_use_case: 批量编辑用例（可选）
            get_job_use_case: 单条记录查询用例（可选）
            debug: include tracebacks in internal errors
        """
        self._generate_use_case = generate_use_case
        self._list_models_use_case = list_models_use_case
        self._catalog = catalog
        self._jobs = jobs
        self._dispatcher = dispatcher
        self._edit_use_case = edit_use_case
        self._batch_edit_use_case = batch_edit_use_case
        self._get_job_use_case = get_job_use_case
        self._debug = debug
        logger.info("ImageGatewayServicer initialized")

    async def GenerateImages(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """生成图像

        Args:
            request: {user_id, model_id, prompt, number_of_images, ...}
            context: gRPC 上下文

        Returns:
            GenerationResult 字典
        """
        try:
            logger.info(
                f"Received GenerateImages request: user={request.get('user_id')}, "
                f"model={request.get('model_id')}, prompt='{str(request.get('prompt', ''))[:50]}...'"
            )
            command = await build_generation_command(request, self._catalog)
            result = await self._generate_use_case.execute(command)
            return result.to_dict()
        except Exception as e:
            await self._abort_for(e, "GenerateImages", context)

    async def EditImage(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """编辑单张图像: {user_id, model_id, instructions, image, references, strength, negative_prompt}"""
        if self._edit_use_case is None:
            await context.abort(grpc.StatusCode.UNIMPLEMENTED, "Image editing not configured")
            return

        try:
            logger.info(
                f"Received EditImage request: user={request.get('user_id')}, model={request.get('model_id')}"
            )
            command = await build_edit_command(request, self._catalog)
            result = await self._edit_use_case.execute(command)
            return result.to_dict()
        except Exception as e:
            await self._abort_for(e, "EditImage", context)

    async def BatchEdit(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """Apply the same instructions to up to ten images."""
        if self._batch_edit_use_case is None:
            await context.abort(grpc.StatusCode.UNIMPLEMENTED, "Batch editing not configured")
            return

        try:
            logger.info(
                f"Received BatchEdit request: user={request.get('user_id')}, "
                f"model={request.get('model_id')}, images={len(request.get('images') or [])}"
            )
            command = await build_edit_command(request, self._catalog, batch=True)
            result = await self._batch_edit_use_case.execute(command)
            return result.to_dict()
        except Exception as e:
            await self._abort_for(e, "BatchEdit", context)

    async def ListModels(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        try:
            return {"models": await self._list_models_use_case.execute()}
        except Exception as e:
            await self._abort_for(e, "ListModels", context)

    async def GetJobs(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """List generation jobs of a user, newest first."""
        try:
            user_id = str(request.get("user_id") or "")
            if not user_id:
                raise ValueError("user_id is required")
            limit = int(request.get("limit") or 50)
            if limit <= 0:
                raise ValueError("limit must be positive")

            jobs = await self._jobs.list_for_user(user_id, limit=limit)
            return {"jobs": [job.to_dict() for job in jobs]}
        except Exception as e:
            await self._abort_for(e, "GetJobs", context)

    async def GetJob(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """Fetch one job of the requesting user: {user_id, job_id}."""
        if self._get_job_use_case is None:
            await context.abort(grpc.StatusCode.UNIMPLEMENTED, "Job lookup not configured")
            return

        try:
            user_id = str(request.get("user_id") or "")
            job_id = str(request.get("job_id") or "")
            if not user_id or not job_id:
                raise ValueError("user_id and job_id are required")

            job = await self._get_job_use_case.execute(user_id, job_id)
            return {"job": job.to_dict()}
        except Exception as e:
            await self._abort_for(e, "GetJob", context)

    async def HealthCheck(self, request: Dict[str, Any], context: aio.ServicerContext) -> Dict[str, Any]:
        """健康检查"""
        logger.debug("Health check request received")
        return {
            "status": "SERVING",
            "version": __version__,
            "providers_status": self._dispatcher.provider_status(),
            "supported_models": len(self._dispatcher.get_supported_models()),
        }

    async def _abort_for(self, error: Exception, method: str, context: aio.ServicerContext) -> None:
        """Map a domain error to its status code and abort the call."""
        if isinstance(error, InsufficientCreditsError):
            logger.info(f"{method} rejected for credits: {error}")
            await context.abort(grpc.StatusCode.FAILED_PRECONDITION, str(error))
        elif isinstance(error, (ModelNotFoundError, JobNotFoundError)):
            logger.warning(f"{method}: {error}")
            await context.abort(grpc.StatusCode.NOT_FOUND, str(error))
        elif isinstance(error, JobAccessDeniedError):
            logger.warning(f"{method}: job {error.job_id} requested by another user")
            await context.abort(grpc.StatusCode.PERMISSION_DENIED, str(error))
        elif isinstance(error, ValueError):
            logger.error(f"Invalid {method} request: {error}")
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(error))
        elif isinstance(error, GenerationFailedError):
            logger.error(f"{method} produced no image: {error.details}")
            await context.abort(
                grpc.StatusCode.UNAVAILABLE,
                f"{error}: {'; '.join(error.details)}" if error.details else str(error),
            )
        else:
            logger.error(f"Unexpected error in {method}: {error}", exc_info=error)
            await context.abort(grpc.StatusCode.INTERNAL, self._internal_message(error))

    def _internal_message(self, error: Exception) -> str:
        if self._debug:
            details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            return f"Internal server error\n{details}"
        return "Internal server error"


def _unary(method: Callable[..., Awaitable[Dict[str, Any]]]) -> grpc.RpcMethodHandler:
    return grpc.unary_unary_rpc_method_handler(
        method,
        request_deserializer=deserialize,
        response_serializer=serialize,
    )


def create_generic_handler(servicer: ImageGatewayServicer) -> grpc.GenericRpcHandler:
    """Register the servicer methods under ``imagegateway.ImageGateway``."""
    return grpc.method_handlers_generic_handler(
        SERVICE_NAME,
        {
            "GenerateImages": _unary(servicer.GenerateImages),
            "EditImage": _unary(servicer.EditImage),
            "BatchEdit": _unary(servicer.BatchEdit),
            "ListModels": _unary(servicer.ListModels),
            "GetJobs": _unary(servicer.GetJobs),
            "GetJob": _unary(servicer.GetJob),
            "HealthCheck": _unary(servicer.HealthCheck),
        },
    )


async def create_grpc_server(
    servicer: ImageGatewayServicer,
    host: str = "[::]",
    port: int = 50051,
) -> aio.Server:
    """创建并配置 gRPC 服务器

    Args:
        servicer: 服务实现
        host: 监听地址
        port: 监听端口

    Returns:
        配置好的 gRPC 服务器
    """
    server = aio.server()

    # 注册服务
    server.add_generic_rpc_handlers((create_generic_handler(servicer),))

    # 绑定端口
    listen_addr = f"{host}:{port}"
    server.add_insecure_port(listen_addr)

    logger.info(f"gRPC server configured on {listen_addr}")
    return server
