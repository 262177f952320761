"""JSON 序列化工具模块（使用 orjson 加速 JSON 操作）"""

from typing import Any

import orjson

JSONDecodeError = orjson.JSONDecodeError


def json_dumps(obj: Any) -> str:
    """使用 orjson 快速序列化"""
    return orjson.dumps(obj).decode("utf-8")


def json_dumps_pretty(obj: Any) -> str:
    """序列化为两空格缩进的多行 JSON"""
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8")


def json_loads(s: str | bytes) -> Any:
    """使用 orjson 快速反序列化"""
    return orjson.loads(s)
