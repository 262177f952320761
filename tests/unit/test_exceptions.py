"""异常模块单元测试。

测试自定义异常类的状态码、错误类型和消息。
"""

import pytest

from toolbridge_svc.exceptions import (
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    ConfigurationError,
    ExtractionFailure,
    RoundLimitExceededError,
    UnexpectedResponseShapeError,
    UpstreamAPIError,
)


@pytest.mark.unit
class TestUpstreamAPIError:
    """UpstreamAPIError 基础异常测试。"""

    def test_basic_initialization(self):
        """测试基本初始化。"""
        error = UpstreamAPIError(500, "Server error")

        assert error.status_code == 500
        assert error.message == "Server error"
        assert error.error_type == "upstream_error"
        assert str(error) == "Server error"

    def test_custom_error_type(self):
        """测试自定义错误类型。"""
        error = UpstreamAPIError(400, "Bad request", "custom_error")

        assert error.error_type == "custom_error"

    def test_can_be_raised_and_caught(self):
        with pytest.raises(UpstreamAPIError) as exc_info:
            raise UpstreamAPIError(503, "Service unavailable")

        assert exc_info.value.status_code == 503


@pytest.mark.unit
class TestFatalErrors:
    """致命错误子类测试。"""

    @pytest.mark.parametrize(
        "error, status_code, error_type",
        [
            (BackendError(), 502, "backend_error"),
            (BackendError("quota exceeded", 429), 429, "backend_error"),
            (BackendTimeoutError(), 504, "backend_timeout"),
            (BackendConnectionError(), 502, "backend_connection_error"),
            (UnexpectedResponseShapeError(), 502, "unexpected_response_format"),
            (RoundLimitExceededError(10), 500, "round_limit_exceeded"),
            (ConfigurationError(), 503, "configuration_error"),
        ],
    )
    def test_status_and_type(self, error, status_code, error_type):
        assert isinstance(error, UpstreamAPIError)
        assert error.status_code == status_code
        assert error.error_type == error_type

    def test_backend_error_keeps_message_verbatim(self):
        assert BackendError("model 'x' not found", 404).message == "model 'x' not found"

    def test_unexpected_shape_message(self):
        assert UnexpectedResponseShapeError().message == "Unexpected response format from target LLM"

    def test_round_limit_message(self):
        error = RoundLimitExceededError(3)

        assert error.message == "Maximum conversation rounds (3) exceeded"
        assert error.max_rounds == 3


@pytest.mark.unit
class TestExtractionFailure:
    """ExtractionFailure 测试。"""

    def test_is_not_fatal(self):
        error = ExtractionFailure("invalid JSON", "{oops")

        assert not isinstance(error, UpstreamAPIError)
        assert error.reason == "invalid JSON"
        assert error.candidate == "{oops"
        assert str(error) == "invalid JSON"
