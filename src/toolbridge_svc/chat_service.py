"""聊天服务模块。

本模块负责把调用方请求交给对应后端目标的编排器，
并把结果转换为流式或非流式的 OpenAI 兼容响应。
"""

from typing import Any, AsyncGenerator, Optional

import httpx

from .config import AppConfig, get_settings
from .exceptions import ConfigurationError
from .logger import get_logger
from .models import BackendTarget, ChatRequest
from .services.chat.backend import BackendClient
from .services.chat.handler_cache import get_handler_cache
from .services.chat.non_streaming import build_completion_response
from .services.chat.orchestrator import RoundOrchestrator
from .services.chat.streaming import stream_events_as_sse

logger = get_logger(__name__)

# 测试时可替换为 httpx.MockTransport
backend_transport: Optional[httpx.AsyncBaseTransport] = None


def resolve_target(model: str, settings: AppConfig | None = None) -> BackendTarget:
    """把请求中的模型名解析为后端目标。

    :param model: 请求中的模型名，为空时使用 ``TARGET_MODEL``
    :param settings: 配置，默认读取全局配置
    :return: 后端目标
    :raises ConfigurationError: 未配置 ``TARGET_API_URL``
    """
    settings = settings or get_settings()
    if not settings.has_target:
        logger.error("No backend target configured: requested_model={}", model)
        raise ConfigurationError(f"No LLM target configured for model '{model or settings.target_model}'")

    return BackendTarget(
        url=settings.target_api_url,
        api_key=settings.target_api_key,
        model=model or settings.target_model,
    )


def create_orchestrator(target: BackendTarget, settings: AppConfig | None = None) -> RoundOrchestrator:
    """为后端目标创建编排器。"""
    settings = settings or get_settings()
    backend = BackendClient(target, timeout=settings.timeout_chat, transport=backend_transport)
    return RoundOrchestrator(backend, max_rounds=settings.max_rounds)


def get_orchestrator(model: str) -> RoundOrchestrator:
    """获取（必要时创建）模型对应的编排器。

    :raises ConfigurationError: 未配置后端目标
    """
    settings = get_settings()
    target = resolve_target(model, settings)
    cache = get_handler_cache(settings.handler_cache_size)
    return cache.get_or_create((target.url, target.model), lambda: create_orchestrator(target, settings))


def response_model_name(chat_request: ChatRequest) -> str:
    """返回给调用方的模型名。"""
    return chat_request.model or get_settings().target_model


async def process_non_streaming_response(chat_request: ChatRequest) -> dict[str, Any]:
    """处理非流式请求。

    :param chat_request: 聊天请求对象
    :return: 完整的聊天补全响应
    :raises UpstreamAPIError: 配置、后端或编排错误
    """
    orchestrator = get_orchestrator(chat_request.model)
    outcome = await orchestrator.handle_request(chat_request)
    return build_completion_response(outcome, response_model_name(chat_request))


async def process_streaming_response(chat_request: ChatRequest) -> AsyncGenerator[str, None]:
    """处理流式请求。

    :param chat_request: 聊天请求对象
    :yields: SSE格式的数据块
    :raises UpstreamAPIError: 在输出第一个数据块之前发生的错误
    """
    orchestrator = get_orchestrator(chat_request.model)
    events = orchestrator.handle_streaming_request(chat_request)
    sse = stream_events_as_sse(events, response_model_name(chat_request))
    try:
        async for chunk in sse:
            yield chunk
    finally:
        await sse.aclose()
        await events.aclose()
