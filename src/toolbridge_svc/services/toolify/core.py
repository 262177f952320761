"""Toolify 核心功能模块。

后端不理解 tool 角色和 ``tool_calls`` 字段，发送前需要把工具相关的历史消息
改写成普通文本消息：

- ``tool`` 消息 → ``user`` 消息 ``Function "NAME" returned: CONTENT``；
- 带 ``tool_calls`` 的 ``assistant`` 消息 → 只保留文本内容，
  无内容时写成 ``Calling function: NAME``。
"""

from typing import Any, Dict, List, Optional

from ...logger import get_logger
from ...utils.json_helpers import json_dumps

logger = get_logger(__name__)

DEFAULT_TOOL_NAME = "tool"


def has_tool_response(messages: List[Dict[str, Any]]) -> bool:
    """对话中是否已包含 tool 角色消息（即本轮为收尾轮）。"""
    return any(isinstance(msg, dict) and msg.get("role") == "tool" for msg in messages)


def _tool_call_name(tool_call: Any) -> str:
    if hasattr(tool_call, "model_dump"):
        tool_call = tool_call.model_dump()
    if not isinstance(tool_call, dict):
        return ""
    return (tool_call.get("function") or {}).get("name") or ""


def _tool_call_id(tool_call: Any) -> Optional[str]:
    if hasattr(tool_call, "id"):
        return tool_call.id
    if isinstance(tool_call, dict):
        return tool_call.get("id")
    return None


def _content_as_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return json_dumps(content)


class ToolifyCore:
    """Toolify 核心类 - 改写工具相关的历史消息。

    无状态，可以在多个请求之间共享。
    """

    def collect_tool_call_names(self, messages: List[Dict[str, Any]]) -> Dict[str, str]:
        """收集对话中 assistant 发起的工具调用 ``id -> 函数名``。"""
        names: Dict[str, str] = {}
        for msg in messages:
            if not isinstance(msg, dict) or msg.get("role") != "assistant":
                continue
            for tool_call in msg.get("tool_calls") or []:
                call_id = _tool_call_id(tool_call)
                if call_id:
                    names[call_id] = _tool_call_name(tool_call)
        return names

    def format_tool_result(self, name: str, content: Any) -> str:
        """格式化工具调用结果供模型理解。

        :param name: 函数名
        :param content: 工具结果（字符串、多段内容或任意 JSON 值）
        :return: ``Function "NAME" returned: CONTENT``
        """
        return f'Function "{name}" returned: {_content_as_text(content)}'

    def format_assistant_tool_calls(self, content: Any, tool_calls: List[Any]) -> str:
        """将 assistant 的工具调用改写为纯文本。

        原有文本内容优先；为空时使用第一个调用的函数名。
        """
        text = _content_as_text(content)
        if text:
            return text
        name = _tool_call_name(tool_calls[0]) if tool_calls else ""
        return f"Calling function: {name or DEFAULT_TOOL_NAME}"

    def preprocess_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """预处理消息，转换工具类型消息为模型可理解的格式。

        返回新的列表，不修改传入的消息对象。

        :param messages: OpenAI 格式的消息列表（字典形式）
        :return: 处理后的消息列表

        .. code-block:: python

           core.preprocess_messages([
               {"role": "assistant", "content": None, "tool_calls": [
                   {"id": "call_1", "type": "function",
                    "function": {"name": "get_weather", "arguments": "{}"}}
               ]},
               {"role": "tool", "tool_call_id": "call_1", "content": "sunny"},
           ])
           # [{"role": "assistant", "content": "Calling function: get_weather"},
           #  {"role": "user", "content": 'Function "get_weather" returned: sunny'}]
        """
        call_names = self.collect_tool_call_names(messages)
        processed_messages = []

        for message in messages:
            if not isinstance(message, dict):
                processed_messages.append(message)
                continue

            role = message.get("role")

            if role == "tool":
                name = (
                    message.get("name")
                    or call_names.get(message.get("tool_call_id") or "")
                    or DEFAULT_TOOL_NAME
                )
                processed_messages.append({
                    "role": "user",
                    "content": self.format_tool_result(name, message.get("content")),
                })
                logger.debug(f"[TOOLIFY] 转换tool消息为user消息: name={name}, tool_call_id={message.get('tool_call_id')}")
                continue

            if role == "assistant" and message.get("tool_calls"):
                processed_messages.append({
                    "role": "assistant",
                    "content": self.format_assistant_tool_calls(message.get("content"), message["tool_calls"]),
                })
                logger.debug("[TOOLIFY] 转换assistant的tool_calls为content")
                continue

            processed_messages.append(message)

        return processed_messages


# 全局单例
_toolify_core_instance: Optional[ToolifyCore] = None


def get_toolify_core() -> ToolifyCore:
    """获取 Toolify 核心单例。

    :return: ToolifyCore 实例
    """
    global _toolify_core_instance
    if _toolify_core_instance is None:
        _toolify_core_instance = ToolifyCore()
    return _toolify_core_instance
