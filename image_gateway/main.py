"""Image Gateway Main Entry Point"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

from . import __version__
from .application.usecase.edit_images import BatchEditUseCase, EditImageUseCase
from .application.usecase.generate_images import GenerateImagesUseCase
from .application.usecase.get_job import GetJobUseCase
from .application.usecase.list_models import ListModelsUseCase
from .domain.service.dispatcher import ImageDispatcher
from .infrastructure.config.settings import Settings, load_settings
from .infrastructure.grpc_server.image_gateway_server import (
    ImageGatewayServicer,
    create_grpc_server,
)
from .infrastructure.image.factory import build_dispatcher
from .infrastructure.persistence.memory import (
    InMemoryCreditLedger,
    InMemoryJobRepository,
    InMemoryModelCatalog,
)


# 全局变量用于优雅关闭
shutdown_event = asyncio.Event()


def setup_logging(level: str = "INFO", log_format: str = "json", stream=None) -> None:
    """配置日志系统

    Args:
        level: 日志级别
        log_format: 日志格式 (json/text)
        stream: 输出流 (stderr by default)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        # JSON 格式日志
        fmt = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'
    else:
        # 文本格式日志
        fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=log_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=stream,
        force=True,
    )


@dataclass
class Application:
    """Wired collaborators shared by the gRPC and sideload surfaces."""

    settings: Settings
    dispatcher: ImageDispatcher
    ledger: InMemoryCreditLedger
    jobs: InMemoryJobRepository
    catalog: InMemoryModelCatalog
    generate_use_case: GenerateImagesUseCase
    list_models_use_case: ListModelsUseCase
    edit_use_case: EditImageUseCase
    batch_edit_use_case: BatchEditUseCase
    get_job_use_case: GetJobUseCase


def build_application(settings: Settings) -> Application:
    """创建应用组件"""
    logger = logging.getLogger(__name__)

    # 1. 创建图像提供商与分发服务
    dispatcher = build_dispatcher(settings.credentials(), settings.provider_options())
    if not dispatcher.get_supported_models():
        logger.warning("No image providers configured, every generation will fail")

    # 2. 模型目录 (config rows, or one row per registered model key)
    if settings.models:
        catalog = InMemoryModelCatalog.from_config(settings.models)
    else:
        catalog = InMemoryModelCatalog.from_registry(dispatcher.registry)

    # 3. 存储与用例
    ledger = InMemoryCreditLedger(default_credits=settings.billing.default_credits)
    jobs = InMemoryJobRepository()

    return Application(
        settings=settings,
        dispatcher=dispatcher,
        ledger=ledger,
        jobs=jobs,
        catalog=catalog,
        generate_use_case=GenerateImagesUseCase(dispatcher=dispatcher, ledger=ledger, jobs=jobs),
        list_models_use_case=ListModelsUseCase(catalog=catalog, dispatcher=dispatcher),
        edit_use_case=EditImageUseCase(dispatcher=dispatcher, ledger=ledger, jobs=jobs),
        batch_edit_use_case=BatchEditUseCase(dispatcher=dispatcher, ledger=ledger, jobs=jobs),
        get_job_use_case=GetJobUseCase(jobs=jobs),
    )


def signal_handler(signum, frame):
    """信号处理器"""
    logging.info(f"Received signal {signum}, initiating shutdown...")
    shutdown_event.set()


async def main(settings: Settings):
    """主函数"""
    logger = logging.getLogger(__name__)
    logger.info("Starting Image Gateway...")

    app = build_application(settings)

    # 创建 gRPC 服务器
    servicer = ImageGatewayServicer(
        generate_use_case=app.generate_use_case,
        list_models_use_case=app.list_models_use_case,
        catalog=app.catalog,
        jobs=app.jobs,
        dispatcher=app.dispatcher,
        edit_use_case=app.edit_use_case,
        batch_edit_use_case=app.batch_edit_use_case,
        get_job_use_case=app.get_job_use_case,
        debug=settings.server.is_development,
    )
    grpc_server = await create_grpc_server(
        servicer,
        host=settings.server.host,
        port=settings.server.grpc_port,
    )

    # 启动服务器
    await grpc_server.start()
    logger.info(f"Image Gateway started on {settings.server.host}:{settings.server.grpc_port}")

    # 等待关闭信号
    await shutdown_event.wait()

    # 优雅关闭
    logger.info("Shutting down gracefully...")
    await grpc_server.stop(grace=5.0)
    logger.info("Image Gateway stopped")


async def run_sideload(settings: Settings):
    """Run in sideload mode: JSON-RPC 2.0 over stdin/stdout."""
    from .sideload.handler import SideloadHandler
    from .sideload.image import ImageHandler

    logger = logging.getLogger(__name__)
    logger.info("Starting Image Gateway in SIDELOAD mode (JSON-RPC 2.0 over stdio)")

    app = build_application(settings)
    image_handler = ImageHandler(
        app.generate_use_case,
        app.list_models_use_case,
        app.catalog,
        app.jobs,
        edit_use_case=app.edit_use_case,
        batch_edit_use_case=app.batch_edit_use_case,
        get_job_use_case=app.get_job_use_case,
    )

    handler = SideloadHandler()

    async def handle_initialize(params):
        return {
            "name": "image-gateway",
            "version": __version__,
            "capabilities": {
                "image": image_handler.get_capabilities(),
                "providers": app.dispatcher.provider_status(),
            }
        }

    async def handle_shutdown(params):
        logger.info("Received shutdown, stopping sideload handler")
        handler.stop()
        return {}

    handler.register_method("initialize", handle_initialize)
    handler.register_method("shutdown", handle_shutdown)
    handler.register_method("image/generate", image_handler.handle_generate)
    handler.register_method("image/models", image_handler.handle_models)
    handler.register_method("image/edit", image_handler.handle_edit)
    handler.register_method("image/batch-edit", image_handler.handle_batch_edit)
    handler.register_method("image/jobs", image_handler.handle_jobs)
    handler.register_method("image/job", image_handler.handle_job)
    handler.register_method("ping", lambda p: {"pong": True})

    await handler.run()
    logger.info("Sideload mode exited")


def run() -> None:
    """Console entry point; ``--sideload`` switches to JSON-RPC over stdio."""
    sideload_mode = "--sideload" in sys.argv

    try:
        settings = load_settings()
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    # stdout is reserved for JSON-RPC in sideload mode
    setup_logging(settings.logging.level, settings.logging.format, stream=sys.stderr)

    # 注册信号处理器
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if sideload_mode:
            asyncio.run(run_sideload(settings))
        else:
            asyncio.run(main(settings))
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
