"""Toolify 工具调用解析器。

从模型的完整文本响应中恢复结构化的函数调用。

候选内容按以下顺序尝试，第一个通过校验的候选胜出：

1. 去除首尾空白后整段文本就是一个 JSON 对象（以 ``{`` 开头、以 ``}`` 结尾）；
2. 从左到右扫描括号深度，深度回到 0 时截取一个对象，取第一个原文包含
   ``function_call`` 的对象；
3. 代码块（带 json 标记或不带语言标记）中的内容。

扫描器会跟踪 JSON 字符串内部状态，字符串值里的 ``{``/``}`` 不计入深度。
"""

import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ...exceptions import ExtractionFailure
from ...logger import get_logger
from ...models import ExtractionResult, FunctionCall, ToolCall
from ...utils.json_helpers import JSONDecodeError, json_dumps, json_loads
from ...utils.uuid_helper import generate_tool_call_id

logger = get_logger(__name__)

FUNCTION_CALL_MARKER = "function_call"

# 模型只是在叙述"要调用函数"而没有给出参数
SENTINEL_PHRASES = frozenset({
    "I need to call a function.",
    "I need to call a function",
})

CODE_BLOCK_PATTERNS = (
    re.compile(r"```\s*json\s*([\s\S]*?)```", re.IGNORECASE),
    re.compile(r"```(?:[\w+-]+[ \t]*\n)?([\s\S]*?)```"),
)

Span = Tuple[int, int]


def iter_json_object_spans(text: str) -> Iterator[Span]:
    """逐个产出文本中顶层花括号对象的区间。

    只在对象内部识别 JSON 字符串（含转义），对象外的引号视为普通文字；
    多余的 ``}`` 被忽略。

    :param text: 任意文本
    :return: ``(start, end)`` 区间迭代器，``text[start:end]`` 以 ``{`` 开头、``}`` 结尾
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            if depth > 0:
                in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield start, i + 1


def find_function_call_object(text: str) -> Optional[Span]:
    """返回第一个原文包含 ``function_call`` 的顶层对象区间。"""
    for start, end in iter_json_object_spans(text):
        if FUNCTION_CALL_MARKER in text[start:end]:
            return start, end
    return None


def find_code_block(text: str) -> Optional[Tuple[str, Span]]:
    """返回第一个代码块的内部文本及整个代码块的区间。"""
    for pattern in CODE_BLOCK_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip(), match.span()
    return None


def find_enclosing_code_block(text: str, span: Span) -> Optional[Span]:
    """返回包含给定区间的代码块区间。"""
    for pattern in CODE_BLOCK_PATTERNS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if start <= span[0] and span[1] <= end:
                return start, end
    return None


def parse_function_call(candidate: str) -> Tuple[str, Dict[str, Any]]:
    """解析并校验候选 JSON。

    :param candidate: 候选 JSON 文本
    :return: ``(函数名, 参数字典)``
    :raises ExtractionFailure: JSON 非法、缺少 ``function_call.name`` 或参数不是对象
    """
    try:
        parsed = json_loads(candidate)
    except JSONDecodeError as e:
        raise ExtractionFailure(f"invalid JSON: {e}", candidate) from e

    if not isinstance(parsed, dict):
        raise ExtractionFailure("candidate is not a JSON object", candidate)

    call = parsed.get(FUNCTION_CALL_MARKER)
    if not isinstance(call, dict):
        raise ExtractionFailure("missing function_call object", candidate)

    name = call.get("name")
    if not isinstance(name, str) or not name:
        raise ExtractionFailure("function_call.name must be a non-empty string", candidate)

    arguments = call.get("arguments")
    if arguments is None:
        arguments = {}
    elif isinstance(arguments, str):
        # 部分模型把参数再编码成字符串
        try:
            arguments = json_loads(arguments) if arguments.strip() else {}
        except JSONDecodeError as e:
            raise ExtractionFailure(f"arguments string is not JSON: {e}", candidate) from e

    if not isinstance(arguments, dict):
        raise ExtractionFailure("function_call.arguments must be an object", candidate)

    return name, arguments


def build_tool_call(name: str, arguments: Dict[str, Any]) -> ToolCall:
    """用新生成的 ID 构造 :class:`ToolCall`。"""
    return ToolCall(
        id=generate_tool_call_id(),
        function=FunctionCall(name=name, arguments=json_dumps(arguments)),
    )


def _iter_candidates(text: str) -> Iterator[Tuple[str, Span, str]]:
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        start = len(text) - len(text.lstrip())
        yield stripped, (start, start + len(stripped)), "raw"

    span = find_function_call_object(text)
    if span is not None:
        # 对象位于代码块内时，以整个代码块作为识别区间
        block_span = find_enclosing_code_block(text, span)
        if block_span is not None:
            yield text[span[0]:span[1]], block_span, "code_block"
        else:
            yield text[span[0]:span[1]], span, "embedded"

    block = find_code_block(text)
    if block is not None:
        content, block_span = block
        yield content, block_span, "code_block"


def extract_tool_call(text: str) -> Optional[ExtractionResult]:
    """从完整文本中提取工具调用。

    同一输入总是得到同一判定（生成的 ``id`` 除外）。

    :param text: 模型的完整响应文本
    :return: :class:`ExtractionResult`，未识别到调用时返回 ``None``

    .. code-block:: python

       result = extract_tool_call(
           '{"function_call": {"name": "get_weather", "arguments": {"location": "Paris"}}}'
       )
       result.tool_call.function.name   # "get_weather"
       result.text_before               # ""

    .. note::
       ``"I need to call a function."``（含或不含句号）永远返回 ``None``。
    """
    if not text:
        return None

    if text.strip() in SENTINEL_PHRASES:
        logger.debug("[TOOLIFY] 响应只是声明要调用函数，跳过提取")
        return None

    for candidate, (start, end), source in _iter_candidates(text):
        try:
            name, arguments = parse_function_call(candidate)
        except ExtractionFailure as e:
            if FUNCTION_CALL_MARKER in candidate:
                logger.warning("[TOOLIFY] 工具调用候选解析失败: source={}, reason={}", source, e.reason)
                logger.debug("[TOOLIFY] 解析失败的候选内容: {}", candidate[:500])
            continue

        if source == "code_block":
            logger.warning("[TOOLIFY] 工具调用位于代码块中，建议让模型直接输出原始 JSON")

        logger.info(f"[TOOLIFY] 识别到工具调用: name={name}, source={source}")
        return ExtractionResult(
            tool_call=build_tool_call(name, arguments),
            text_before=text[:start].strip(),
            text_after=text[end:].strip(),
            span_start=start,
            span_end=end,
        )

    return None


def convert_to_openai_tool_calls(tool_calls: List[ToolCall], with_index: bool = False) -> List[Dict[str, Any]]:
    """将工具调用转换为 OpenAI 格式的字典。

    :param tool_calls: 工具调用列表
    :param with_index: 是否添加 ``index`` 字段（流式 delta 需要）
    :return: OpenAI 格式的 tool_calls 列表
    """
    result = []
    for index, tool_call in enumerate(tool_calls):
        item = tool_call.model_dump()
        if with_index:
            item = {"index": index, **item}
        result.append(item)
    return result
