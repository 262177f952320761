"""数据模型定义模块。

本模块定义API请求和响应的Pydantic模型，用于数据验证和序列化，
以及工具调用引擎内部传递的结构（调用、提取结果、流式事件、轮次结果）。
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ToolFunction(BaseModel):
    """工具函数定义（OpenAI 兼容）。

    参数模式是不透明的 JSON Schema，只做透传序列化，不做校验。
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(..., description="函数名称")
    description: Optional[str] = Field(default=None, description="函数描述")
    parameters: Optional[Dict[str, Any]] = Field(default=None, description="函数参数的 JSON Schema")


class Tool(BaseModel):
    """工具定义（OpenAI 兼容）。

    表示一个可供模型调用的工具，接收后不可变。
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = Field(default="function", description="工具类型（目前仅支持 function）")
    function: ToolFunction = Field(..., description="函数定义")


class Message(BaseModel):
    """聊天消息模型。

    :param role: 消息角色（system/user/assistant/tool）
    :param content: 消息内容，字符串、多段内容数组或空
    :param tool_calls: 工具调用列表（仅用于 assistant 角色）
    :param tool_call_id: 工具调用 ID（仅用于 tool 角色）
    :param name: 函数名称（用于 tool 角色）
    :type role: Literal["system", "user", "assistant", "tool"]
    :type content: Union[str, list, None]
    :type tool_calls: Optional[List[Dict[str, Any]]]
    :type tool_call_id: Optional[str]
    :type name: Optional[str]
    """

    role: Literal["system", "user", "assistant", "tool"] = Field(..., description="消息角色")
    content: Union[str, list, None] = Field(default=None, description="消息内容")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None, description="工具调用列表")
    tool_call_id: Optional[str] = Field(default=None, description="工具调用 ID")
    name: Optional[str] = Field(default=None, description="函数名称（用于 tool 角色）")


class ChatRequest(BaseModel):
    """聊天补全请求模型（OpenAI 兼容）。

    :param model: 模型名称，用于解析后端目标
    :param messages: 对话消息列表，顺序有意义
    :param stream: 是否使用流式响应（Server-Sent Events）
    :param temperature: 采样温度，未提供时不发送给后端
    :param max_tokens: 生成的最大 token 数量，未提供时不发送给后端
    :param tools: 工具定义列表
    :param tool_choice: 工具选择策略（仅接收，不影响行为）

    .. seealso::
       :class:`Message` - 消息对象
       :class:`ChatCompletionResponse` - 响应对象
    """

    model: str = Field(default="", description="模型名称")
    messages: list[Message] = Field(..., description="消息列表")
    stream: bool = Field(default=False, description="是否流式响应")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="采样温度")
    max_tokens: Optional[int] = Field(default=None, ge=1, description="最大token数")
    tools: Optional[List[Tool]] = Field(default=None, description="工具定义列表")
    tool_choice: Optional[Union[str, Dict]] = Field(default=None, description="工具选择策略")


# --- Tool Call Models (工具调用相关模型) ---

class FunctionCall(BaseModel):
    """函数调用内容：名称和 JSON 编码的参数对象。"""
    name: str = Field(..., description="函数名称")
    arguments: str = Field(default="{}", description="JSON 编码的参数对象")


class ToolCall(BaseModel):
    """结构化工具调用（OpenAI 兼容）。

    ``id`` 在每次提取时生成，不保证稳定。
    """
    id: str = Field(..., description="工具调用 ID")
    type: Literal["function"] = Field(default="function", description="调用类型")
    function: FunctionCall = Field(..., description="函数调用内容")


class ExtractionResult(BaseModel):
    """从完整文本中提取出的工具调用。

    ``span_start``/``span_end`` 是被识别部分（JSON 或代码块）在原文中的位置。
    """
    tool_call: ToolCall = Field(..., description="提取出的工具调用")
    text_before: str = Field(default="", description="调用之前的文本（已去除首尾空白）")
    text_after: str = Field(default="", description="调用之后的文本（已去除首尾空白）")
    span_start: int = Field(default=0, description="识别区间起点")
    span_end: int = Field(default=0, description="识别区间终点")


class StreamEventType(str, Enum):
    """流式检测器输出的事件类型。"""
    CONTENT = "content"
    TOOL_CALL = "tool_call"
    END = "end"


class StreamEvent(BaseModel):
    """流式检测器输出的单个事件。

    ``Content(text)``、``ToolCall(call)`` 或 ``End(reason)``。
    """
    type: StreamEventType
    text: str = ""
    tool_call: Optional[ToolCall] = None
    finish_reason: Optional[Literal["stop", "tool_calls"]] = None

    @classmethod
    def content(cls, text: str) -> "StreamEvent":
        return cls(type=StreamEventType.CONTENT, text=text)

    @classmethod
    def call(cls, tool_call: ToolCall) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL, tool_call=tool_call)

    @classmethod
    def end(cls, finish_reason: Literal["stop", "tool_calls"]) -> "StreamEvent":
        return cls(type=StreamEventType.END, finish_reason=finish_reason)


class RoundState(str, Enum):
    """轮次编排器的状态。"""
    INIT = "init"
    AWAITING_BACKEND = "awaiting_backend"
    COMPLETED = "completed"
    TOOL_CALL_RETURNED = "tool_call_returned"
    ROUND_LIMIT_EXCEEDED = "round_limit_exceeded"


class RoundOutcome(BaseModel):
    """一次非流式请求的终态。

    ``COMPLETED`` 时 ``content`` 为最终回答；
    ``TOOL_CALL_RETURNED`` 时 ``tool_call`` 交还调用方执行，``content`` 为调用前的文本。
    """
    state: RoundState
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    rounds: int = 0


class BackendTarget(BaseModel):
    """后端目标：地址、密钥和模型名。"""
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="chat completions 完整地址")
    api_key: str = Field(default="", description="访问密钥")
    model: str = Field(..., description="发送给后端的模型名")


# --- Response Models (响应模型) ---

class DownstreamModel(BaseModel):
    """下游模型对象（OpenAI 兼容）。"""
    id: str = Field(..., description="模型 ID")
    object: str = Field(default="model", description="对象类型")
    created: int = Field(..., description="创建时间戳（Unix 时间）")
    owned_by: str = Field(default="toolbridge", description="所有者标识")


class DownstreamModelsResponse(BaseModel):
    """下游模型列表响应。"""
    object: str = Field(default="list", description="对象类型")
    data: List[DownstreamModel] = Field(default_factory=list, description="模型列表")


class ChatCompletionChunkDelta(BaseModel):
    """流式响应的增量内容。"""
    role: Optional[str] = Field(default=None, description="消息角色（assistant）")
    content: Optional[str] = Field(default=None, description="增量文本内容")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None, description="工具调用列表（流式）")


class ChatCompletionChunkChoice(BaseModel):
    """流式响应的选择项。"""
    index: int = Field(default=0, description="选择索引")
    delta: ChatCompletionChunkDelta = Field(..., description="增量内容")
    finish_reason: Optional[str] = Field(default=None, description="完成原因：stop, tool_calls, error")


class ChatCompletionUsage(BaseModel):
    """Token 使用统计（后端不提供，固定为 0）。"""
    prompt_tokens: int = Field(default=0, description="输入 token 数量")
    completion_tokens: int = Field(default=0, description="输出 token 数量")
    total_tokens: int = Field(default=0, description="总 token 数量")


class ChatCompletionChunk(BaseModel):
    """聊天补全流式响应块（OpenAI 兼容）。"""
    id: str = Field(..., description="响应唯一标识符（如 chatcmpl-xxx）")
    object: str = Field(default="chat.completion.chunk", description="对象类型")
    created: int = Field(..., description="创建时间戳（Unix 时间）")
    model: str = Field(..., description="使用的模型名称")
    choices: List[ChatCompletionChunkChoice] = Field(..., description="响应选择列表")


class ChatCompletionMessage(BaseModel):
    """完整的助手消息。"""
    role: str = Field(default="assistant", description="消息角色（assistant）")
    content: Optional[str] = Field(default=None, description="完整的消息内容")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None, description="工具调用列表")


class ChatCompletionChoice(BaseModel):
    """非流式响应的选择项。"""
    index: int = Field(default=0, description="选择索引")
    message: ChatCompletionMessage = Field(..., description="完整的消息对象")
    finish_reason: str = Field(..., description="完成原因：stop, tool_calls")


class ChatCompletionResponse(BaseModel):
    """聊天补全非流式响应（OpenAI 兼容）。

    参考：https://platform.openai.com/docs/api-reference/chat/object
    """
    id: str = Field(..., description="响应唯一标识符（如 chatcmpl-xxx）")
    object: str = Field(default="chat.completion", description="对象类型")
    created: int = Field(..., description="创建时间戳（Unix 时间）")
    model: str = Field(..., description="使用的模型名称")
    choices: List[ChatCompletionChoice] = Field(..., description="响应选择列表")
    usage: ChatCompletionUsage = Field(default_factory=ChatCompletionUsage, description="使用统计信息")


class ErrorDetail(BaseModel):
    """API 错误详情。"""
    message: str = Field(..., description="错误消息")
    type: str = Field(..., description="错误类型")
    code: Optional[int] = Field(default=None, description="错误代码")


class ErrorResponse(BaseModel):
    """API 错误响应。"""
    error: ErrorDetail = Field(..., description="错误详情")
