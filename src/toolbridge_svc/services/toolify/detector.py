"""Toolify 流式检测器。

用于在流式响应中检测工具调用。

检测器有两种模式：

- ``PASSTHROUGH``：增量内容立即输出；
- ``SUSPECT``：累积文本看起来像工具调用（以 ``{`` 开头或出现 ``"function_call"``），
  从触发的那个增量开始全部缓冲，直到后端响应结束再做判定。

流结束时对完整文本运行 :func:`~.parser.extract_tool_call`：识别成功则输出调用，
失败则按到达顺序回放缓冲内容。一旦进入 ``SUSPECT``，在整个响应到达之前
不会再向调用方输出任何内容，即使最终证明不是工具调用。

已知限制：``"function_call"`` 在响应中途才出现时，它所在对象的开头部分
可能已经在 ``PASSTHROUGH`` 阶段输出。例如增量 ``['Sure: {"func', 'tion_call": ...}']``
会先输出 ``Sure: {"func``，随后只输出工具调用。识别成功时补发的只是
尚未输出的前置文本，已经输出的内容无法收回。
"""

from enum import Enum
from typing import AsyncGenerator, AsyncIterable, List

from .parser import extract_tool_call
from ...logger import get_logger
from ...models import StreamEvent

logger = get_logger(__name__)

SUSPECT_MARKER = '"function_call"'


class DetectionMode(str, Enum):
    """检测模式。"""
    PASSTHROUGH = "passthrough"
    SUSPECT = "suspect"


class StreamingToolCallDetector:
    """流式工具调用检测器。

    每轮创建一个实例。``is_finalization_round`` 为真时不做任何检测，
    增量原样输出。

    :param is_finalization_round: 对话中是否已包含 tool 角色消息

    .. code-block:: python

       detector = StreamingToolCallDetector()
       events = []
       for delta in ['{"function', '_call":{"name":"x","arguments":{}}}']:
           events += detector.process_chunk(delta)
       events += detector.finalize()
       # events: [ToolCall(x), End(tool_calls)]
    """

    def __init__(self, is_finalization_round: bool = False):
        self.is_finalization_round = is_finalization_round
        self.accumulated = ""
        self.mode = DetectionMode.PASSTHROUGH
        self.buffered: List[str] = []
        self.emitted_length = 0
        self.finalized = False

    def looks_like_tool_call(self) -> bool:
        """累积文本是否像工具调用的开头。"""
        trimmed = self.accumulated.strip()
        return (
            trimmed.startswith("{")
            or self.accumulated.startswith("\n{")
            or SUSPECT_MARKER in self.accumulated
        )

    def process_chunk(self, content: str) -> List[StreamEvent]:
        """处理一个增量内容块。

        :param content: 后端给出的增量文本
        :return: 应立即输出的事件（零个或一个 ``Content``）
        """
        if not content:
            return []

        self.accumulated += content

        if self.is_finalization_round:
            self.emitted_length += len(content)
            return [StreamEvent.content(content)]

        if self.mode is DetectionMode.SUSPECT:
            self.buffered.append(content)
            return []

        if self.looks_like_tool_call():
            logger.info("[TOOLIFY] 检测到疑似工具调用，开始缓冲: accumulated_length={}", len(self.accumulated))
            self.mode = DetectionMode.SUSPECT
            self.buffered.append(content)
            return []

        self.emitted_length += len(content)
        return [StreamEvent.content(content)]

    def finalize(self) -> List[StreamEvent]:
        """流结束时的最终处理。

        :return: 剩余事件，最后一个总是 ``End``
        """
        self.finalized = True

        if self.is_finalization_round:
            return [StreamEvent.end("stop")]

        result = extract_tool_call(self.accumulated)
        if result is not None:
            events = []
            # 只补发 Passthrough 阶段尚未输出的前置文本
            pending = self.accumulated[self.emitted_length:result.span_start].strip()
            if pending:
                events.append(StreamEvent.content(pending))
            if result.text_after:
                logger.debug("[TOOLIFY] 工具调用之后的文本被丢弃: length={}", len(result.text_after))
            events.append(StreamEvent.call(result.tool_call))
            events.append(StreamEvent.end("tool_calls"))
            self.buffered = []
            logger.info(f"[TOOLIFY] 流式响应识别到工具调用: {result.tool_call.function.name}")
            return events

        if self.mode is DetectionMode.SUSPECT:
            logger.info(f"[TOOLIFY] 疑似工具调用未能解析，回放 {len(self.buffered)} 个缓冲块")
            events = [StreamEvent.content(chunk) for chunk in self.buffered]
            self.emitted_length = len(self.accumulated)
            self.buffered = []
            events.append(StreamEvent.end("stop"))
            return events

        return [StreamEvent.end("stop")]

    async def run(self, deltas: AsyncIterable[str]) -> AsyncGenerator[StreamEvent, None]:
        """消费整个增量序列，依次产出事件，以恰好一个 ``End`` 结束。

        :param deltas: 后端增量文本的异步序列
        """
        async for delta in deltas:
            for event in self.process_chunk(delta):
                yield event
        for event in self.finalize():
            yield event
