"""自定义异常模块。

本模块定义了应用中使用的自定义异常类型。

致命错误都继承自 :class:`UpstreamAPIError`，携带 HTTP 状态码、
错误消息和错误类型，路由层据此构造结构化错误响应。
:class:`ExtractionFailure` 是可恢复错误，只在提取器内部使用。
"""


class UpstreamAPIError(Exception):
    """上游API错误异常类。

    用于封装后端调用或编排过程中的致命错误，包含状态码和错误信息。
    """

    def __init__(
        self, status_code: int, message: str, error_type: str = "upstream_error"
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        super().__init__(self.message)


class BackendError(UpstreamAPIError):
    """后端返回非 2xx 状态或响应体中带有 error 字段。

    消息原样透传后端给出的错误信息，不做自动重试。
    """

    def __init__(
        self,
        message: str = "Target LLM error",
        status_code: int = 502,
        error_type: str = "backend_error",
    ):
        super().__init__(status_code, message, error_type)


class BackendTimeoutError(UpstreamAPIError):
    """后端请求超时。"""

    def __init__(
        self,
        message: str = "Target LLM request timed out",
        status_code: int = 504,
        error_type: str = "backend_timeout",
    ):
        super().__init__(status_code, message, error_type)


class BackendConnectionError(UpstreamAPIError):
    """无法连接后端或传输中断。"""

    def __init__(
        self,
        message: str = "Failed to reach target LLM",
        status_code: int = 502,
        error_type: str = "backend_connection_error",
    ):
        super().__init__(status_code, message, error_type)


class UnexpectedResponseShapeError(UpstreamAPIError):
    """后端响应不匹配任何已知的内容字段。"""

    def __init__(
        self,
        message: str = "Unexpected response format from target LLM",
        status_code: int = 502,
        error_type: str = "unexpected_response_format",
    ):
        super().__init__(status_code, message, error_type)


class RoundLimitExceededError(UpstreamAPIError):
    """超出单个请求允许的最大轮次。"""

    def __init__(
        self,
        max_rounds: int,
        status_code: int = 500,
        error_type: str = "round_limit_exceeded",
    ):
        self.max_rounds = max_rounds
        super().__init__(
            status_code,
            f"Maximum conversation rounds ({max_rounds}) exceeded",
            error_type,
        )


class ConfigurationError(UpstreamAPIError):
    """没有可用的后端目标。"""

    def __init__(
        self,
        message: str = "No LLM target configured for this model",
        status_code: int = 503,
        error_type: str = "configuration_error",
    ):
        super().__init__(status_code, message, error_type)


class ExtractionFailure(Exception):
    """候选文本无法解析为合法的工具调用。

    可恢复：提取器记录日志后把响应当作普通文本处理。
    """

    def __init__(self, reason: str, candidate: str = ""):
        self.reason = reason
        self.candidate = candidate
        super().__init__(reason)
