"""API路由模块。

本模块定义所有HTTP端点，包括聊天补全、模型列表和CORS预检请求处理。
"""

import time
from typing import AsyncGenerator, Union

from fastapi import APIRouter, Response
from fastapi.responses import StreamingResponse

from .chat_service import (
    process_non_streaming_response,
    process_streaming_response,
)
from .config import get_settings
from .exceptions import UpstreamAPIError
from .logger import get_logger
from .models import ChatRequest, DownstreamModel, DownstreamModelsResponse, ErrorDetail, ErrorResponse

logger = get_logger(__name__)
router = APIRouter()


def error_response(e: UpstreamAPIError) -> Response:
    """把致命错误转换为结构化错误响应。"""
    body = ErrorResponse(
        error=ErrorDetail(
            message=e.message,
            type=e.error_type,
            code=e.status_code
        )
    )
    return Response(
        status_code=e.status_code,
        content=body.model_dump_json(),
        media_type="application/json",
    )


@router.options("/chat/completions")
async def chat_completions_options() -> Response:
    """处理CORS预检请求。

    :return: 包含CORS头的响应
    """
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        },
    )


@router.get("/models")
async def list_models() -> dict:
    """列出可用的模型（即配置的默认后端模型）。

    :return: 包含模型列表的字典
    :rtype: dict
    """
    settings = get_settings()
    response = DownstreamModelsResponse(
        data=[DownstreamModel(id=settings.target_model, created=int(time.time()))]
    )
    return response.model_dump()


@router.post("/chat/completions", response_model=None)
async def chat_completions(chat_request: ChatRequest) -> Union[dict, Response, StreamingResponse]:
    """处理聊天补全请求（OpenAI 兼容）。

    支持流式和非流式两种响应模式，根据 ``chat_request.stream`` 参数决定。

    :param chat_request: 聊天请求参数
    :type chat_request: ChatRequest
    :return: 流式响应或 JSON 响应
    :rtype: Union[dict, Response, StreamingResponse]

    .. note::
       **响应模式:**

       - 流式：返回 Server-Sent Events (SSE) 格式
       - 非流式：返回完整的 JSON 响应；识别到工具调用时
         ``finish_reason`` 为 ``tool_calls``
    """
    logger.info(
        "Chat request received: model={}, stream={}, message_count={}, tools={}",
        chat_request.model,
        chat_request.stream,
        len(chat_request.messages),
        len(chat_request.tools or []),
    )

    try:
        if chat_request.stream:
            logger.debug("Processing streaming request")
            stream_generator = process_streaming_response(chat_request)

            # 预先获取第一个数据块以便在流式传输前检测错误
            try:
                first_chunk = await anext(stream_generator)
            except UpstreamAPIError as e:
                logger.error(
                    "Upstream API error before streaming: status_code={}, error_message={}, error_type={}, model={}",
                    e.status_code,
                    e.message,
                    e.error_type,
                    chat_request.model,
                )
                return error_response(e)

            async def stream_with_first_chunk() -> AsyncGenerator[str, None]:
                try:
                    yield first_chunk
                    async for chunk in stream_generator:
                        yield chunk
                finally:
                    await stream_generator.aclose()

            return StreamingResponse(
                stream_with_first_chunk(),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                },
            )
        else:
            logger.debug("Processing non-streaming request")
            # 直接返回字典，让 FastAPI 自动序列化为 JSON
            return await process_non_streaming_response(chat_request)
    except UpstreamAPIError as e:
        logger.error(
            "Upstream API error in route: status_code={}, error_message={}, error_type={}, model={}",
            e.status_code,
            e.message,
            e.error_type,
            chat_request.model,
        )
        return error_response(e)
