"""后端模型客户端模块。

本模块负责与不支持工具调用的后端模型交互：构造扁平的 chat 请求，
发送非流式或流式请求，并从多种常见响应格式中取出文本内容。

支持的内容字段（按顺序尝试）：

- ``choices[0].delta.content`` / ``choices[0].message.content``（OpenAI 兼容）
- ``delta.content`` / ``message.content``（Ollama chat 等）
- ``content`` / ``response``（Ollama generate 等）
"""

from typing import Any, AsyncGenerator, Optional

import httpx

from ...config import get_settings
from ...exceptions import BackendConnectionError, BackendTimeoutError, UnexpectedResponseShapeError
from ...logger import get_logger, json_str as log_json
from ...models import BackendTarget
from ...utils.error_handler import handle_backend_error, raise_for_embedded_error
from ...utils.json_helpers import JSONDecodeError, json_dumps, json_loads

logger = get_logger(__name__)

EMPTY_RESPONSE_FALLBACK = "I received an empty response from the model. Please try again."


def _first_choice(payload: dict[str, Any]) -> Optional[dict[str, Any]]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def extract_content(payload: Any) -> Optional[str]:
    """从一个流式数据块中取出增量文本。

    :param payload: 已解码的数据块
    :return: 文本（结构可识别但没有文本时为空字符串）；无法识别时返回 None
    """
    if not isinstance(payload, dict):
        return None

    choice = _first_choice(payload)
    if choice is not None:
        for key in ("delta", "message"):
            part = choice.get(key)
            if isinstance(part, dict):
                return part.get("content") or ""
        if isinstance(choice.get("text"), str):
            return choice["text"]

    for key in ("delta", "message"):
        part = payload.get(key)
        if isinstance(part, dict) and "content" in part:
            return part.get("content") or ""

    for key in ("content", "response"):
        value = payload.get(key)
        if isinstance(value, str):
            return value

    return None


def extract_completion_text(payload: Any) -> str:
    """从非流式响应体中取出完整回答。

    :param payload: 已解码的响应体（对象或纯字符串）
    :return: 回答文本；``choices[0].message.content`` 为空时返回固定提示语
    :raises BackendError: 响应体中带有 ``error`` 字段
    :raises UnexpectedResponseShapeError: 没有任何可识别的内容字段
    """
    if isinstance(payload, str):
        return payload

    raise_for_embedded_error(payload)

    if isinstance(payload, dict):
        choice = _first_choice(payload)
        if choice is not None and isinstance(choice.get("message"), dict):
            return choice["message"].get("content") or EMPTY_RESPONSE_FALLBACK

        if isinstance(payload.get("response"), str):
            return payload["response"]

        message = payload.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]

    logger.error("Unexpected backend response format: body={}", log_json(payload, limit=500))
    raise UnexpectedResponseShapeError()


def stream_line_data(line: str) -> Optional[str]:
    """取出一行流式响应中承载数据的部分。

    ``data:`` 前缀会被去掉；空行、注释、``event:``/``id:``/``retry:``
    以及 ``[DONE]`` 返回 None。其余行（包括无法解码的文本）原样返回。
    """
    line = line.strip()
    if not line or line.startswith(":"):
        return None

    if line.startswith("data:"):
        line = line[5:].strip()
    elif line.startswith(("event:", "id:", "retry:")):
        return None

    if not line or line == "[DONE]":
        return None
    return line


def decode_stream_data(data: str) -> Optional[dict[str, Any]]:
    """把一行的数据部分解码为 JSON 对象；无法解码或不是对象时返回 None。"""
    try:
        obj = json_loads(data)
    except JSONDecodeError:
        logger.warning("Invalid JSON in backend stream: line={}", data[:100])
        return None

    return obj if isinstance(obj, dict) else None


def parse_stream_line(line: str) -> Optional[dict[str, Any]]:
    """解析一行流式响应。

    支持 SSE（``data: {...}``）和逐行 JSON 两种格式；
    空行、注释、``[DONE]`` 和无法解码的行返回 None。
    """
    data = stream_line_data(line)
    if data is None:
        return None
    return decode_stream_data(data)


class BackendClient:
    """后端模型客户端。

    每次调用创建独立的 :class:`httpx.AsyncClient`，不保存请求间状态，
    因此同一实例可以被并发请求共享。

    :param target: 后端目标
    :param timeout: 请求超时（秒）
    :param transport: 可选的 httpx 传输层（测试时注入 ``httpx.MockTransport``）
    """

    def __init__(
        self,
        target: BackendTarget,
        timeout: float = 300,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.target = target
        self.timeout = timeout
        self.transport = transport

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json, text/event-stream"}
        if self.target.api_key:
            headers["Authorization"] = f"Bearer {self.target.api_key}"
        return headers

    def build_payload(
        self,
        messages: list[dict[str, str]],
        stream: bool,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """构造发送给后端的请求体（不含任何工具字段）。"""
        payload: dict[str, Any] = {
            "model": self.target.model,
            "messages": messages,
            "stream": stream,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(float(self.timeout)), transport=self.transport)

    def _log_request(self, payload: dict[str, Any], stream: bool) -> None:
        logger.info(
            "Backend request initiated: model={}, url={}, stream={}, messages={}",
            self.target.model,
            self.target.url,
            stream,
            len(payload["messages"]),
        )
        if get_settings().verbose_logging:
            logger.debug("Backend request details: url={}, json_body={}", self.target.url, log_json(payload))

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """发送非流式请求并返回完整回答。

        :raises BackendError: 后端返回非 2xx 或 ``error`` 字段
        :raises BackendTimeoutError: 超时
        :raises BackendConnectionError: 连接失败
        :raises UnexpectedResponseShapeError: 无法识别的响应格式
        """
        payload = self.build_payload(messages, stream=False, temperature=temperature, max_tokens=max_tokens)
        self._log_request(payload, stream=False)

        try:
            async with self._client() as client:
                response = await client.post(self.target.url, content=json_dumps(payload), headers=self.build_headers())
                if not response.is_success:
                    await handle_backend_error(response, self.target.model, is_streaming=False)
                body = response.content
        except httpx.TimeoutException as e:
            logger.error("Backend request timed out: url={}, timeout={}", self.target.url, self.timeout)
            raise BackendTimeoutError(f"Target LLM did not respond within {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error("Backend request error: error_type={}, error={}", type(e).__name__, str(e))
            raise BackendConnectionError(f"Failed to reach target LLM: {e}") from e

        try:
            parsed: Any = json_loads(body)
        except JSONDecodeError:
            parsed = body.decode("utf-8", errors="ignore")
            if not parsed.strip():
                raise UnexpectedResponseShapeError()

        text = extract_completion_text(parsed)
        logger.info("Backend response completed: model={}, content_length={}", self.target.model, len(text))
        return text

    async def stream(
        self,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[str, None]:
        """发送流式请求，逐个产出增量文本。

        生成器被关闭（调用方断开）时，后端连接随之关闭。

        没有任何一行能被识别时，把收到的数据行拼回完整响应体再解析一次，
        兼容忽略 ``stream`` 参数、返回格式化 JSON 的后端；仍然无法识别
        （HTML 页面、纯文本等）则抛出 :class:`UnexpectedResponseShapeError`，
        不会以空回答结束。

        :raises BackendError: 后端返回非 2xx 或数据块中带有 ``error`` 字段
        :raises BackendTimeoutError: 超时
        :raises BackendConnectionError: 连接失败或传输中断
        :raises UnexpectedResponseShapeError: 收到的数据行全部无法识别
        """
        payload = self.build_payload(messages, stream=True, temperature=temperature, max_tokens=max_tokens)
        self._log_request(payload, stream=True)

        chunk_count = 0
        recognized = 0
        # 在第一行被识别之前保留原始数据行，用于整体解析
        raw_lines: list[str] = []
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.target.url, content=json_dumps(payload), headers=self.build_headers()
                ) as response:
                    if not response.is_success:
                        await handle_backend_error(response, self.target.model, is_streaming=True)

                    logger.info("Backend stream started: model={}, status_code={}", self.target.model, response.status_code)

                    async for line in response.aiter_lines():
                        data = stream_line_data(line)
                        if data is None:
                            continue
                        chunk_count += 1
                        if not recognized:
                            raw_lines.append(line)
                        obj = decode_stream_data(data)
                        if obj is None:
                            continue
                        raise_for_embedded_error(obj)
                        content = extract_content(obj)
                        if content is None:
                            continue
                        recognized += 1
                        raw_lines = []
                        if content:
                            yield content
        except httpx.TimeoutException as e:
            logger.error("Backend stream timed out: url={}, timeout={}", self.target.url, self.timeout)
            raise BackendTimeoutError(f"Target LLM did not respond within {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error("Backend stream error: error_type={}, error={}", type(e).__name__, str(e))
            raise BackendConnectionError(f"Failed to reach target LLM: {e}") from e

        if chunk_count and not recognized:
            text = self._recover_whole_body(raw_lines)
            if text:
                yield text

        logger.info("Backend stream completed: model={}, chunks={}", self.target.model, chunk_count)

    def _recover_whole_body(self, raw_lines: list[str]) -> str:
        """把无法逐行识别的流式响应当作一个完整响应体解析。

        :raises UnexpectedResponseShapeError: 拼接后仍不是可识别的 JSON 对象
        """
        body = "\n".join(raw_lines)
        try:
            parsed = json_loads(body)
        except JSONDecodeError:
            parsed = None

        if not isinstance(parsed, dict):
            logger.error(
                "Unrecognized backend stream: model={}, lines={}, body={}",
                self.target.model,
                len(raw_lines),
                body[:500],
            )
            raise UnexpectedResponseShapeError()

        logger.warning("Backend ignored stream mode, parsing whole body: model={}", self.target.model)
        return extract_completion_text(parsed)
