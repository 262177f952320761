"""Toolify 提示词生成模块。

把 OpenAI tools 定义编译成一段自然语言指令，并注入到系统消息中。
"""

from typing import Any, Dict, List

from ...logger import get_logger
from ...utils.json_helpers import json_dumps_pretty

logger = get_logger(__name__)

FUNCTION_CALL_KEY = "function_call"

PROMPT_PREAMBLE = (
    "You are a helpful assistant. You can help me by answering my questions. "
    "You can also ask me questions.\n\n"
    "Here is a list of functions, starting with <<< and ending with >>>:\n<<<\n"
)

CALL_FORMAT_INSTRUCTIONS = """>>>
To use a function, you MUST respond with ONLY a valid JSON object in the following format, with no additional text, markdown formatting, or code blocks:
{
  "function_call": {
    "name": "function_name",
    "arguments": {
      "param1": "value1",
      "param2": "value2"
    }
  }
}

IMPORTANT:
- Output ONLY the raw JSON object. It contains only function_call, name and arguments, plus the parameters the function requires.
- Do NOT wrap the JSON in code blocks (no ```).
- Do NOT include any explanatory text or prose before or after the JSON.
- Make sure the JSON is valid and properly formatted.
- After receiving the function result, continue the conversation normally.
Check the user's request against the functions above. If one of them helps answer it, respond with the pure JSON object exactly as shown.
If you don't need to use a function, just respond normally in plain text without JSON."""


def _tool_function(tool: Any) -> Dict[str, Any]:
    """取出工具的 function 部分，兼容 Pydantic 模型与字典。"""
    if hasattr(tool, "model_dump"):
        tool = tool.model_dump(exclude_none=True)
    return tool.get("function", {}) or {}


def generate_tools_prompt(tools: List[Any]) -> str:
    """生成工具定义的提示词。

    列出每个工具的名称、描述和序列化后的参数模式，
    并给出唯一的调用格式：一个带 ``function_call`` 键的 JSON 对象。

    :param tools: 工具定义列表（OpenAI 格式，字典或 :class:`~toolbridge_svc.models.Tool`）
    :return: 指令文本；工具列表为空时返回空字符串
    """
    if not tools:
        return ""

    parts = [PROMPT_PREAMBLE]
    for tool in tools:
        func = _tool_function(tool)
        parts.append(f"Function: {func.get('name', '')}\n")
        parts.append(f"Description: {func.get('description') or ''}\n")
        parameters = func.get("parameters")
        if parameters is not None:
            parts.append(f"Parameters: {json_dumps_pretty(parameters)}\n")
        parts.append("\n")
    parts.append(CALL_FORMAT_INSTRUCTIONS)

    return "".join(parts)


def inject_tool_prompt(messages: List[Dict[str, Any]], tools: List[Any]) -> List[Dict[str, Any]]:
    """将工具定义注入到消息列表中。

    合并到第一条 system 消息末尾；没有 system 消息时在开头插入一条。
    不修改传入的消息对象。

    :param messages: 原始消息列表（字典形式）
    :param tools: 工具定义列表
    :return: 注入工具提示词后的新消息列表；工具为空时原样返回
    """
    tools_prompt = generate_tools_prompt(tools)
    if not tools_prompt:
        return messages

    new_messages = []
    system_found = False

    for msg in messages:
        if not system_found and msg.get("role") == "system":
            existing_content = msg.get("content") or ""
            if isinstance(existing_content, list):
                merged = [*existing_content, {"type": "text", "text": tools_prompt}]
            else:
                merged = f"{existing_content}\n\n{tools_prompt}"
            msg = {**msg, "content": merged}
            system_found = True
        new_messages.append(msg)

    if not system_found:
        new_messages.insert(0, {"role": "system", "content": tools_prompt})

    logger.info(f"[TOOLIFY] 已注入工具提示词，工具数量: {len(tools)}")
    return new_messages
