"""工具执行模块。

按函数名查找处理函数并执行工具调用。编排器从不调用这里：
工具由调用方执行，本模块供调用方或外部执行器使用。
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Union

from ...logger import get_logger
from ...models import ToolCall
from ...utils.json_helpers import JSONDecodeError, json_dumps, json_loads

logger = get_logger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class ToolExecutor:
    """工具注册表与执行器。

    处理函数接收解码后的参数字典，可以是普通函数或协程函数。
    """

    def __init__(self):
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        """注册工具处理函数，同名时覆盖。"""
        self._handlers[name] = handler
        logger.debug("Tool registered: name={}", name)

    def has_tool(self, name: str) -> bool:
        return name in self._handlers

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, tool_call: ToolCall) -> Any:
        """执行工具调用。

        :param tool_call: 提取出的工具调用
        :return: 处理函数的返回值；未知工具、参数非法或处理函数抛出异常时
                 返回 ``{"error": 消息}``
        """
        name = tool_call.function.name
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested: name={}", name)
            return {"error": f"Unknown tool: {name}"}

        try:
            arguments = json_loads(tool_call.function.arguments or "{}")
        except JSONDecodeError as e:
            logger.warning("Invalid tool arguments: name={}, error={}", name, str(e))
            return {"error": f"Invalid arguments for {name}: {e}"}

        if not isinstance(arguments, dict):
            return {"error": f"Invalid arguments for {name}: expected an object"}

        try:
            result = handler(arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error("Tool execution failed: name={}, error_type={}, error={}", name, type(e).__name__, str(e))
            return {"error": str(e)}

        logger.info("Tool executed: name={}", name)
        return result

    @staticmethod
    def format_tool_message(tool_call: ToolCall, result: Any) -> Dict[str, Any]:
        """把执行结果包装为 tool 角色消息，供调用方放入下一次请求。"""
        content = result if isinstance(result, str) else json_dumps(result)
        return {
            "role": "tool",
            "tool_call_id": tool_call.id,
            "name": tool_call.function.name,
            "content": content,
        }
