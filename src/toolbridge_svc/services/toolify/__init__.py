"""Toolify 模块：实现 OpenAI 工具调用的模拟。

通过提示词注入和响应解析来模拟 OpenAI 的 tools API。
"""

from .core import ToolifyCore, get_toolify_core, has_tool_response
from .detector import DetectionMode, StreamingToolCallDetector
from .parser import convert_to_openai_tool_calls, extract_tool_call, iter_json_object_spans
from .prompt import generate_tools_prompt, inject_tool_prompt

__all__ = [
    "ToolifyCore",
    "get_toolify_core",
    "has_tool_response",
    "DetectionMode",
    "StreamingToolCallDetector",
    "convert_to_openai_tool_calls",
    "extract_tool_call",
    "iter_json_object_spans",
    "generate_tools_prompt",
    "inject_tool_prompt",
]
