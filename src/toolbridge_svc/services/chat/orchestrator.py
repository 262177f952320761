"""轮次编排模块。

每个调用方请求对应一个 :class:`ConversationState`，状态流转：

``INIT → AWAITING_BACKEND → {COMPLETED | TOOL_CALL_RETURNED | ROUND_LIMIT_EXCEEDED}``

编排器不执行工具：识别到调用后直接交还调用方，由调用方执行并在下一次请求中
带上 tool 角色消息。因此每轮都会到达终态，最大轮次只是安全上限。
"""

from typing import Any, AsyncGenerator, Optional

from .backend import BackendClient
from .converter import convert_messages, message_to_dict
from ..toolify import StreamingToolCallDetector, extract_tool_call, get_toolify_core, has_tool_response, inject_tool_prompt
from ...exceptions import RoundLimitExceededError
from ...logger import get_logger
from ...models import ChatRequest, RoundOutcome, RoundState, StreamEvent, Tool

logger = get_logger(__name__)


class ConversationState:
    """单个请求的对话状态。

    :param messages: 字典形式的消息列表（顺序有意义）
    :param tools: 工具定义列表
    :param max_rounds: 最大轮次
    """

    def __init__(self, messages: list[dict[str, Any]], tools: Optional[list[Tool]], max_rounds: int):
        self.messages = list(messages)
        self.tools = list(tools or [])
        self.max_rounds = max_rounds
        self.round = 0
        self.tools_injected = False
        self.status = RoundState.INIT

    @property
    def is_finalization_round(self) -> bool:
        """对话中是否已有 tool 角色消息；每次都从消息重新计算。"""
        return has_tool_response(self.messages)

    def inject_tools(self) -> None:
        """注入工具提示词，整个对话最多一次；收尾轮不注入。"""
        if self.tools_injected or self.is_finalization_round or not self.tools:
            return
        self.messages = inject_tool_prompt(self.messages, self.tools)
        self.tools_injected = True

    def next_round(self) -> int:
        """进入下一轮。

        :raises RoundLimitExceededError: 轮次预算已用尽
        """
        if self.round >= self.max_rounds:
            self.status = RoundState.ROUND_LIMIT_EXCEEDED
            logger.error("Round limit exceeded: max_rounds={}", self.max_rounds)
            raise RoundLimitExceededError(self.max_rounds)
        self.round += 1
        self.status = RoundState.AWAITING_BACKEND
        return self.round

    def outbound_messages(self) -> list[dict[str, str]]:
        """发往后端的扁平消息（tool 消息改写为 user 文本）。"""
        return convert_messages(get_toolify_core().preprocess_messages(self.messages))


class RoundOrchestrator:
    """轮次编排器。

    只持有不可变配置（后端客户端和最大轮次），可在请求之间共享。

    :param backend: 后端客户端
    :param max_rounds: 单请求最大轮次
    """

    def __init__(self, backend: BackendClient, max_rounds: int = 10):
        self.backend = backend
        self.max_rounds = max_rounds

    def create_state(self, request: ChatRequest) -> ConversationState:
        state = ConversationState(
            [message_to_dict(m) for m in request.messages],
            request.tools,
            self.max_rounds,
        )
        state.inject_tools()
        logger.info(
            "Conversation initialized: model={}, messages={}, tools={}, finalization_round={}",
            self.backend.target.model,
            len(state.messages),
            len(state.tools),
            state.is_finalization_round,
        )
        return state

    async def handle_request(self, request: ChatRequest) -> RoundOutcome:
        """处理非流式请求。

        :param request: 调用方请求
        :return: 终态（``COMPLETED`` 或 ``TOOL_CALL_RETURNED``）
        :raises RoundLimitExceededError: 轮次预算用尽
        :raises UpstreamAPIError: 后端调用失败
        """
        state = self.create_state(request)

        while True:
            rounds = state.next_round()
            text = await self.backend.complete(
                state.outbound_messages(),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )

            if not state.is_finalization_round:
                result = extract_tool_call(text)
                if result is not None:
                    state.status = RoundState.TOOL_CALL_RETURNED
                    logger.info(
                        "Round finished with tool call: round={}, name={}",
                        rounds,
                        result.tool_call.function.name,
                    )
                    return RoundOutcome(
                        state=state.status,
                        content=result.text_before or None,
                        tool_call=result.tool_call,
                        rounds=rounds,
                    )

            state.status = RoundState.COMPLETED
            logger.info("Round finished: round={}, content_length={}", rounds, len(text))
            return RoundOutcome(state=state.status, content=text, rounds=rounds)

    async def handle_streaming_request(self, request: ChatRequest) -> AsyncGenerator[StreamEvent, None]:
        """处理流式请求，产出检测器事件，以恰好一个 ``End`` 结束。

        调用方关闭生成器时，后端流随之关闭。

        :raises RoundLimitExceededError: 轮次预算用尽
        :raises UpstreamAPIError: 后端调用失败
        """
        state = self.create_state(request)

        rounds = state.next_round()
        detector = StreamingToolCallDetector(is_finalization_round=state.is_finalization_round)
        deltas = self.backend.stream(
            state.outbound_messages(),
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )
        events = detector.run(deltas)
        try:
            async for event in events:
                if event.finish_reason == "tool_calls":
                    state.status = RoundState.TOOL_CALL_RETURNED
                elif event.finish_reason == "stop":
                    state.status = RoundState.COMPLETED
                yield event
        finally:
            await events.aclose()
            await deltas.aclose()

        logger.info("Streaming round finished: round={}, state={}", rounds, state.status.value)
