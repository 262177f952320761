"""ASGI应用入口模块。

本模块导出FastAPI应用实例，供ASGI服务器（如Granian、Uvicorn等）使用。
包含应用启动和关闭时的初始化与清理逻辑。

Example::

    # 使用Granian运行
    granian --interface asgi toolbridge_svc.asgi:app --host 0.0.0.0 --port 3500

    # 使用Granian运行（带workers）
    granian --interface asgi toolbridge_svc.asgi:app --host 0.0.0.0 --port 3500 --workers 4

    # 使用Uvicorn运行
    uvicorn toolbridge_svc.asgi:app --host 0.0.0.0 --port 3500
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from .app import create_app
from .config import get_settings
from .logger import get_logger
from .services.chat.handler_cache import get_handler_cache, reset_handler_cache

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI应用生命周期管理器。

    启动时按配置容量创建处理器缓存，关闭时丢弃缓存。

    :param app: FastAPI应用实例
    :yield: None
    """
    settings = get_settings()
    get_handler_cache(settings.handler_cache_size)
    logger.info(
        "Application services initialized: env={}, host={}, port={}, target={}",
        settings.app_env,
        settings.host,
        settings.port,
        settings.target_api_url or "none",
    )

    yield

    logger.info("Shutting down application services...")
    reset_handler_cache()


def create_app_with_lifespan() -> FastAPI:
    """创建带有生命周期管理的 FastAPI 应用实例。

    :return: 配置完成的 FastAPI 应用实例
    """
    app = create_app()
    app.router.lifespan_context = lifespan
    return app


app = create_app_with_lifespan()

__all__ = ["app"]
