"""Toolify 流式检测器单元测试。"""

import pytest

from toolbridge_svc.models import StreamEvent, StreamEventType
from toolbridge_svc.services.toolify import DetectionMode, StreamingToolCallDetector
from toolbridge_svc.utils.json_helpers import json_loads
from tests.fixtures import async_iter


def run_detector(chunks: list[str], is_finalization_round: bool = False) -> list[StreamEvent]:
    detector = StreamingToolCallDetector(is_finalization_round)
    events = []
    for chunk in chunks:
        events.extend(detector.process_chunk(chunk))
    events.extend(detector.finalize())
    return events


def content_of(events: list[StreamEvent]) -> str:
    return "".join(e.text for e in events if e.type is StreamEventType.CONTENT)


def split_every(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


@pytest.mark.unit
class TestPlainTextStreaming:
    """没有工具调用时的流式输出。"""

    @pytest.mark.parametrize("chunks", [["Hello", " world"], ["Hello world"], list("Hello world")])
    def test_chunking_does_not_change_content(self, chunks):
        """任意切分方式得到相同的拼接内容。"""
        events = run_detector(chunks)

        assert content_of(events) == "Hello world"
        assert events[-1] == StreamEvent.end("stop")
        assert sum(1 for e in events if e.type is StreamEventType.END) == 1

    def test_passthrough_emits_immediately(self):
        detector = StreamingToolCallDetector()

        assert detector.process_chunk("Hi") == [StreamEvent.content("Hi")]
        assert detector.mode is DetectionMode.PASSTHROUGH

    def test_empty_deltas_are_skipped(self):
        detector = StreamingToolCallDetector()

        assert detector.process_chunk("") == []
        assert detector.accumulated == ""

    def test_empty_stream_ends_with_stop(self):
        assert run_detector([]) == [StreamEvent.end("stop")]


@pytest.mark.unit
class TestToolCallDetection:
    """工具调用检测。"""

    def test_fragmented_call_is_detected(self):
        """被切碎的调用仍被识别，且之前没有任何内容输出。"""
        events = run_detector(['{"function', '_call":{"name":"x",', '"arguments":{}}}'])

        assert [e.type for e in events] == [StreamEventType.TOOL_CALL, StreamEventType.END]
        assert events[0].tool_call.function.name == "x"
        assert events[0].tool_call.function.arguments == "{}"
        assert events[1].finish_reason == "tool_calls"

    def test_leading_brace_switches_to_suspect(self):
        detector = StreamingToolCallDetector()

        assert detector.process_chunk("  {") == []
        assert detector.mode is DetectionMode.SUSPECT
        assert detector.buffered == ["  {"]

    def test_leading_newline_brace_switches_to_suspect(self):
        detector = StreamingToolCallDetector()

        assert detector.process_chunk("\n{") == []
        assert detector.mode is DetectionMode.SUSPECT

    def test_call_after_prose_emits_only_unstreamed_text(self, weather_call_text):
        """调用前的文本已经流出的部分不会重复输出。"""
        chunks = ["Let me check. ", "One sec.\n", weather_call_text[:20], weather_call_text[20:]]

        events = run_detector(chunks)

        assert content_of(events) == "Let me check. One sec.\n"
        assert events[-2].type is StreamEventType.TOOL_CALL
        assert json_loads(events[-2].tool_call.function.arguments) == {"location": "Paris"}
        assert events[-1].finish_reason == "tool_calls"

    def test_marker_in_same_chunk_as_prose(self, weather_call_text):
        """前置文本与调用在同一个增量中时，前置文本在调用之前补发。"""
        events = run_detector([f"Checking the weather. {weather_call_text}"])

        assert [e.type for e in events] == [
            StreamEventType.CONTENT,
            StreamEventType.TOOL_CALL,
            StreamEventType.END,
        ]
        assert events[0].text == "Checking the weather."

    def test_object_opened_before_marker_is_already_streamed(self):
        """句中开始的 JSON 对象在标记出现前已经流出，调用仍然被识别（已知限制）。"""
        events = run_detector(['Sure: {"func', 'tion_call": {"name": "x", "arguments": {}}}'])

        assert content_of(events) == 'Sure: {"func'
        assert [e.type for e in events] == [
            StreamEventType.CONTENT,
            StreamEventType.TOOL_CALL,
            StreamEventType.END,
        ]
        assert events[1].tool_call.function.name == "x"
        assert events[-1].finish_reason == "tool_calls"

    def test_text_after_call_is_not_emitted(self, weather_call_text):
        events = run_detector([weather_call_text, " Hope that helps!"])

        assert content_of(events) == ""
        assert events[-1].finish_reason == "tool_calls"

    @pytest.mark.parametrize("size", [1, 3, 7, 50])
    def test_any_chunk_size(self, weather_call_text, size):
        events = run_detector(split_every(weather_call_text, size))

        assert content_of(events) == ""
        assert events[0].tool_call.function.name == "get_weather"


@pytest.mark.unit
class TestFalsePositiveRecovery:
    """疑似调用最终不成立时回放缓冲内容。"""

    def test_json_without_call_is_replayed_in_order(self):
        chunks = ['{"answer":', ' 42', '}']

        events = run_detector(chunks)

        assert [e.text for e in events[:-1]] == chunks
        assert events[-1] == StreamEvent.end("stop")

    def test_nothing_streams_once_suspect(self):
        detector = StreamingToolCallDetector()

        detector.process_chunk("{")
        assert detector.process_chunk("not json at all") == []
        assert detector.process_chunk(" and more prose") == []

        events = detector.finalize()
        assert content_of(events) == "{not json at all and more prose"

    def test_prose_mentioning_marker_is_replayed(self):
        chunks = ["The key ", 'is "function_call"', " in the output."]

        events = run_detector(chunks)

        assert content_of(events) == "The key is \"function_call\" in the output."
        assert events[-1].finish_reason == "stop"

    def test_sentinel_phrase_is_streamed_as_text(self):
        events = run_detector(["I need to call ", "a function."])

        assert content_of(events) == "I need to call a function."
        assert events[-1].finish_reason == "stop"


@pytest.mark.unit
class TestFinalizationRound:
    """收尾轮不做检测。"""

    def test_everything_passes_through(self, weather_call_text):
        chunks = split_every(weather_call_text, 10)

        events = run_detector(chunks, is_finalization_round=True)

        assert [e.text for e in events[:-1]] == chunks
        assert events[-1] == StreamEvent.end("stop")

    def test_no_buffering(self):
        detector = StreamingToolCallDetector(is_finalization_round=True)

        assert detector.process_chunk("{") == [StreamEvent.content("{")]
        assert detector.buffered == []


@pytest.mark.unit
class TestRun:
    """异步驱动。"""

    @pytest.mark.asyncio
    async def test_run_yields_events_and_single_end(self, weather_call_text):
        detector = StreamingToolCallDetector()

        events = [e async for e in detector.run(async_iter(["Sure. ", weather_call_text]))]

        assert events[0] == StreamEvent.content("Sure. ")
        assert events[1].type is StreamEventType.TOOL_CALL
        assert events[2] == StreamEvent.end("tool_calls")
        assert detector.finalized
