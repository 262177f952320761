"""全局测试配置和 fixtures。

本模块提供所有测试共享的 fixtures 和配置。
"""

import os
from typing import Generator

import pytest

# 在导入任何模块之前设置必需的环境变量
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("VERBOSE_LOGGING", "false")
os.environ.setdefault("TARGET_API_URL", "http://backend.test/v1/chat/completions")
os.environ.setdefault("TARGET_MODEL", "test-model")

from toolbridge_svc.config import AppConfig, get_settings
from toolbridge_svc.services.chat.handler_cache import reset_handler_cache

TEST_TARGET_URL = "http://backend.test/v1/chat/completions"


@pytest.fixture(scope="session")
def test_settings() -> AppConfig:
    """测试环境配置。

    提供隔离的测试配置，避免影响生产环境。
    """
    return AppConfig(
        target_api_url=TEST_TARGET_URL,
        target_model="test-model",
        log_level="DEBUG",
        verbose_logging=False,
    )


@pytest.fixture
def mock_settings(test_settings: AppConfig) -> AppConfig:
    """可修改的测试配置副本。"""
    return test_settings.model_copy(deep=True)


@pytest.fixture(autouse=True)
def reset_caches() -> Generator[None, None, None]:
    """自动重置配置和处理器缓存。

    确保每个测试都有干净的缓存状态。
    """
    get_settings.cache_clear()
    reset_handler_cache()
    yield
    get_settings.cache_clear()
    reset_handler_cache()


@pytest.fixture
def weather_tool() -> dict:
    """示例工具定义。"""
    return {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Get the current weather for a location",
            "parameters": {
                "type": "object",
                "properties": {"location": {"type": "string"}},
                "required": ["location"],
            },
        },
    }


@pytest.fixture
def calculator_tool() -> dict:
    """示例计算器工具定义。"""
    return {
        "type": "function",
        "function": {
            "name": "calculate",
            "description": "Evaluate an arithmetic expression",
            "parameters": {
                "type": "object",
                "properties": {"expression": {"type": "string"}},
                "required": ["expression"],
            },
        },
    }


@pytest.fixture
def weather_call_text() -> str:
    """模型按约定格式给出的工具调用文本。"""
    return '{"function_call": {"name": "get_weather", "arguments": {"location": "Paris"}}}'


@pytest.fixture
def anyio_backend():
    """指定 anyio 后端为 asyncio。"""
    return "asyncio"
