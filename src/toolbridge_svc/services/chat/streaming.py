"""流式聊天响应处理模块。

本模块负责把编排器产出的 :class:`~toolbridge_svc.models.StreamEvent` 转换为
OpenAI 兼容的 SSE 数据块。
"""

from datetime import datetime, UTC
from typing import Any, AsyncGenerator, AsyncIterator

from ...exceptions import UpstreamAPIError
from ...logger import get_logger
from ...models import StreamEvent, StreamEventType, ToolCall
from ...utils.json_helpers import json_dumps
from ...utils.uuid_helper import generate_completion_id
from ..toolify.parser import convert_to_openai_tool_calls

logger = get_logger(__name__)

SSE_DONE = "data: [DONE]\n\n"


def format_sse(data: dict[str, Any]) -> str:
    """序列化为一条 SSE 数据。"""
    return f"data: {json_dumps(data)}\n\n"


def _chunk(chunk_id: str, model: str, timestamp: int, delta: dict[str, Any], finish_reason: str | None) -> dict[str, Any]:
    return {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": timestamp,
        "model": model,
        "choices": [
            {
                "index": 0,
                "delta": delta,
                "finish_reason": finish_reason,
            }
        ],
    }


def create_chat_completion_chunk(
    content: str | None,
    model: str,
    timestamp: int,
    chunk_id: str,
    finish_reason: str | None = None,
    include_role: bool = False,
) -> dict[str, Any]:
    """创建聊天补全数据块（直接构造字典，避免 Pydantic 模型的开销）。

    :param content: 增量文本，None 时 delta 为空
    :param model: 模型名称
    :param timestamp: 时间戳
    :param chunk_id: chunk ID（同一响应内复用）
    :param finish_reason: 完成原因
    :param include_role: 是否在 delta 中带上 ``role``（第一个数据块）
    :return: 符合OpenAI格式的响应数据块
    """
    delta: dict[str, Any] = {}
    if include_role:
        delta["role"] = "assistant"
    if content is not None:
        delta["content"] = content
    return _chunk(chunk_id, model, timestamp, delta, finish_reason)


def create_tool_call_chunk(
    tool_call: ToolCall,
    model: str,
    timestamp: int,
    chunk_id: str,
    include_role: bool = False,
) -> dict[str, Any]:
    """创建携带完整工具调用的数据块（``delta.tool_calls[0]`` 带 ``index``）。"""
    delta: dict[str, Any] = {}
    if include_role:
        delta["role"] = "assistant"
    delta["tool_calls"] = convert_to_openai_tool_calls([tool_call], with_index=True)
    return _chunk(chunk_id, model, timestamp, delta, None)


def create_error_chunk(
    error_message: str,
    error_type: str,
    model: str,
    status_code: int | None = None,
) -> str:
    """创建错误响应块。

    :param error_message: 错误消息
    :param error_type: 错误类型
    :param model: 模型名称
    :param status_code: HTTP状态码
    :return: SSE格式的错误响应
    """
    error_data = _chunk(
        generate_completion_id(),
        model,
        int(datetime.now(UTC).timestamp()),
        {},
        "error",
    )
    error_data["error"] = {
        "message": error_message,
        "type": error_type,
        "code": status_code,
    }
    return format_sse(error_data)


async def stream_events_as_sse(events: AsyncIterator[StreamEvent], model: str) -> AsyncGenerator[str, None]:
    """把事件序列转换为 SSE 数据块，最后输出 ``data: [DONE]``。

    :param events: 编排器产出的事件
    :param model: 返回给调用方的模型名称
    :yields: SSE格式的数据块
    :raises UpstreamAPIError: 在输出第一个数据块之前发生的错误原样抛出

    .. note::
       已经输出过数据后发生的错误无法再改变 HTTP 状态码，
       改为输出一个 ``finish_reason: "error"`` 的数据块，再输出 ``[DONE]``。
    """
    timestamp = int(datetime.now().timestamp())
    chunk_id = generate_completion_id()
    started = False
    chunk_count = 0

    try:
        async for event in events:
            if event.type is StreamEventType.CONTENT:
                chunk = create_chat_completion_chunk(event.text, model, timestamp, chunk_id, include_role=not started)
            elif event.type is StreamEventType.TOOL_CALL:
                chunk = create_tool_call_chunk(event.tool_call, model, timestamp, chunk_id, include_role=not started)
                logger.info("[TOOLIFY] 发送工具调用: name={}", event.tool_call.function.name)
            else:
                chunk = create_chat_completion_chunk(
                    None, model, timestamp, chunk_id,
                    finish_reason=event.finish_reason,
                    include_role=not started,
                )
                logger.info(
                    "Streaming completion: model={}, total_chunks={}, finish_reason={}",
                    model,
                    chunk_count,
                    event.finish_reason,
                )

            started = True
            chunk_count += 1
            yield format_sse(chunk)

        yield SSE_DONE
    except UpstreamAPIError as e:
        if not started:
            raise
        logger.error(
            "Upstream API error during streaming: status_code={}, error_message={}, error_type={}, model={}",
            e.status_code,
            e.message,
            e.error_type,
            model,
        )
        yield create_error_chunk(e.message, e.error_type, model, e.status_code)
        yield SSE_DONE
    except Exception as e:
        if not started:
            raise
        logger.exception("Unexpected error during streaming: error_type={}, model={}", type(e).__name__, model)
        yield create_error_chunk(str(e), "internal_error", model, 500)
        yield SSE_DONE
