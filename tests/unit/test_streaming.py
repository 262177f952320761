"""流式响应模块单元测试。"""

import pytest

from toolbridge_svc.exceptions import BackendError, BackendTimeoutError
from toolbridge_svc.models import FunctionCall, StreamEvent, ToolCall
from toolbridge_svc.services.chat.streaming import (
    SSE_DONE,
    create_chat_completion_chunk,
    create_error_chunk,
    create_tool_call_chunk,
    format_sse,
    stream_events_as_sse,
)
from tests.fixtures import parse_sse_events


def weather_call() -> ToolCall:
    return ToolCall(id="call_abc", function=FunctionCall(name="get_weather", arguments='{"location":"Paris"}'))


async def collect(events, model: str = "test-model") -> list:
    return [chunk async for chunk in stream_events_as_sse(events, model)]


async def event_iter(items, error: Exception | None = None):
    for item in items:
        yield item
    if error is not None:
        raise error


@pytest.mark.unit
class TestChunkBuilders:
    """数据块构建函数测试。"""

    def test_content_chunk(self):
        chunk = create_chat_completion_chunk("Hi", "m", 1700000000, "chatcmpl-1")

        assert chunk["id"] == "chatcmpl-1"
        assert chunk["object"] == "chat.completion.chunk"
        assert chunk["created"] == 1700000000
        assert chunk["choices"] == [{"index": 0, "delta": {"content": "Hi"}, "finish_reason": None}]

    def test_first_chunk_carries_role(self):
        chunk = create_chat_completion_chunk("Hi", "m", 0, "c", include_role=True)

        assert chunk["choices"][0]["delta"] == {"role": "assistant", "content": "Hi"}

    def test_final_chunk_has_empty_delta(self):
        chunk = create_chat_completion_chunk(None, "m", 0, "c", finish_reason="stop")

        assert chunk["choices"][0]["delta"] == {}
        assert chunk["choices"][0]["finish_reason"] == "stop"

    def test_tool_call_chunk_has_index(self):
        chunk = create_tool_call_chunk(weather_call(), "m", 0, "c")

        tool_calls = chunk["choices"][0]["delta"]["tool_calls"]
        assert tool_calls == [{
            "index": 0,
            "id": "call_abc",
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"location":"Paris"}'},
        }]

    def test_error_chunk(self):
        sse = create_error_chunk("boom", "backend_error", "m", 502)

        [event] = parse_sse_events(sse)
        assert event["choices"][0]["finish_reason"] == "error"
        assert event["error"] == {"message": "boom", "type": "backend_error", "code": 502}

    def test_format_sse(self):
        assert format_sse({"a": 1}) == 'data: {"a":1}\n\n'
        assert SSE_DONE == "data: [DONE]\n\n"


@pytest.mark.unit
class TestStreamEventsAsSSE:
    """事件到 SSE 的转换测试。"""

    @pytest.mark.asyncio
    async def test_content_then_done(self):
        chunks = await collect(event_iter([
            StreamEvent.content("Hello "),
            StreamEvent.content("world"),
            StreamEvent.end("stop"),
        ]))

        events = parse_sse_events("".join(chunks))
        assert events[-1] == "[DONE]"
        assert events[0]["choices"][0]["delta"] == {"role": "assistant", "content": "Hello "}
        assert events[1]["choices"][0]["delta"] == {"content": "world"}
        assert events[2]["choices"][0]["finish_reason"] == "stop"
        assert len({e["id"] for e in events[:-1]}) == 1

    @pytest.mark.asyncio
    async def test_tool_call_then_finish_reason(self):
        chunks = await collect(event_iter([StreamEvent.call(weather_call()), StreamEvent.end("tool_calls")]))

        events = parse_sse_events("".join(chunks))
        assert events[0]["choices"][0]["delta"]["role"] == "assistant"
        assert events[0]["choices"][0]["delta"]["tool_calls"][0]["function"]["name"] == "get_weather"
        assert events[1]["choices"][0]["finish_reason"] == "tool_calls"
        assert events[2] == "[DONE]"

    @pytest.mark.asyncio
    async def test_error_before_first_chunk_is_raised(self):
        with pytest.raises(BackendTimeoutError):
            await collect(event_iter([], BackendTimeoutError()))

    @pytest.mark.asyncio
    async def test_unexpected_error_before_first_chunk_is_raised(self):
        with pytest.raises(RuntimeError):
            await collect(event_iter([], RuntimeError("bug")))

    @pytest.mark.asyncio
    async def test_error_after_start_becomes_error_chunk(self):
        chunks = await collect(event_iter([StreamEvent.content("partial")], BackendError("connection dropped", 502)))

        events = parse_sse_events("".join(chunks))
        assert events[0]["choices"][0]["delta"]["content"] == "partial"
        assert events[1]["error"] == {"message": "connection dropped", "type": "backend_error", "code": 502}
        assert events[2] == "[DONE]"

    @pytest.mark.asyncio
    async def test_unexpected_error_after_start_is_internal_error(self):
        chunks = await collect(event_iter([StreamEvent.content("partial")], ValueError("oops")))

        events = parse_sse_events("".join(chunks))
        assert events[1]["error"]["type"] == "internal_error"
        assert events[1]["error"]["code"] == 500
        assert events[-1] == "[DONE]"
