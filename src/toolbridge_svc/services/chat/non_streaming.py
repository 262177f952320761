"""非流式聊天响应处理模块。

本模块负责把编排器的终态构建为 OpenAI 兼容的完整响应。
"""

from datetime import datetime
from typing import Any

from ...logger import get_logger
from ...models import (
    ChatCompletionChoice,
    ChatCompletionMessage,
    ChatCompletionResponse,
    ChatCompletionUsage,
    RoundOutcome,
    RoundState,
)
from ...utils.uuid_helper import generate_completion_id
from ..toolify.parser import convert_to_openai_tool_calls

logger = get_logger(__name__)


def build_completion_response(outcome: RoundOutcome, model: str) -> dict[str, Any]:
    """构建完整OpenAI格式响应。

    :param outcome: 编排器终态
    :param model: 返回给调用方的模型名称
    :return: 响应字典
    """
    if outcome.state is RoundState.TOOL_CALL_RETURNED and outcome.tool_call is not None:
        message = ChatCompletionMessage(
            content=outcome.content,
            tool_calls=convert_to_openai_tool_calls([outcome.tool_call]),
        )
        finish_reason = "tool_calls"
    else:
        message = ChatCompletionMessage(content=outcome.content or "")
        finish_reason = "stop"

    response_obj = ChatCompletionResponse(
        id=generate_completion_id(),
        created=int(datetime.now().timestamp()),
        model=model,
        choices=[ChatCompletionChoice(index=0, message=message, finish_reason=finish_reason)],
        usage=ChatCompletionUsage(),
    )

    logger.info(
        "Non-streaming response completed: model={}, finish_reason={}, rounds={}",
        model,
        finish_reason,
        outcome.rounds,
    )

    data = response_obj.model_dump(exclude_none=True)
    # 工具调用时 content 为空也需要显式返回 null
    data["choices"][0]["message"].setdefault("content", None)
    return data
