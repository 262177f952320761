"""错误处理工具模块。

提供统一的后端错误处理逻辑：非 2xx 响应和响应体中的 ``error`` 字段。
"""

from typing import Any

import httpx

from ..exceptions import BackendError
from ..logger import get_logger
from .json_helpers import JSONDecodeError, json_loads

logger = get_logger(__name__)


def extract_error_message(payload: Any) -> str | None:
    """从后端响应体中取出错误消息。

    兼容 ``{"error": {"message": ...}}``、``{"error": "..."}``
    以及 ``{"error": {"detail": ...}}`` 几种写法。

    :param payload: 已解码的响应体
    :return: 错误消息；没有 ``error`` 字段时返回 None
    """
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        message = error.get("message") or error.get("detail")
        return str(message) if message else "Target LLM error"
    return str(error)


def raise_for_embedded_error(payload: Any, status_code: int = 502) -> None:
    """响应体中带有 ``error`` 字段时抛出 :class:`BackendError`。"""
    message = extract_error_message(payload)
    if message is not None:
        logger.error("Backend returned embedded error: status_code={}, message={}", status_code, message[:200])
        raise BackendError(message, status_code if status_code >= 400 else 502)


async def handle_backend_error(response: httpx.Response, model: str, is_streaming: bool = True) -> None:
    """统一处理后端 HTTP 错误。

    读取完整响应体，优先使用后端自己给出的错误消息。
    4xx/5xx 状态码原样透传给调用方；重定向等其他非 2xx 状态
    对调用方没有意义，统一映射为 502。

    :param response: HTTP 响应对象
    :param model: 发送给后端的模型名
    :param is_streaming: 是否为流式请求
    :type response: httpx.Response
    :type model: str
    :type is_streaming: bool
    :raises BackendError: 总是抛出

    .. note::
       不做自动重试。
    """
    error_content = await response.aread()
    error_text = error_content.decode("utf-8", errors="ignore")

    log_prefix = "Backend HTTP error"
    if not is_streaming:
        log_prefix += " (non-streaming)"
    logger.error(
        f"{log_prefix}: status_code={{}}, response_text={{}}, model={{}}, url={{}}",
        response.status_code,
        error_text[:200],
        model,
        str(response.url),
    )

    message = None
    try:
        message = extract_error_message(json_loads(error_content))
    except JSONDecodeError:
        pass

    if message is None:
        message = error_text.strip()[:500]

    if response.status_code < 400:
        detail = f": {message}" if message else ""
        raise BackendError(f"Target LLM returned HTTP {response.status_code}{detail}", 502)
    raise BackendError(message or f"Target LLM returned HTTP {response.status_code}", response.status_code)
