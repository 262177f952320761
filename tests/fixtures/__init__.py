"""测试辅助工具包。"""

from .builders import (
    BackendResponseBuilder,
    ChatRequestBuilder,
    parse_sse_events,
)

from .mocks import (
    FakeBackend,
    RecordingTransport,
    TEST_TARGET,
    async_iter,
)

__all__ = [
    # Builders
    "BackendResponseBuilder",
    "ChatRequestBuilder",
    "parse_sse_events",
    # Mocks
    "FakeBackend",
    "RecordingTransport",
    "TEST_TARGET",
    "async_iter",
]
