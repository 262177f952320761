"""日志配置模块。

所有模块通过 :func:`get_logger` 使用同一个 loguru logger，
应用启动时由 :func:`configure_logging` 安装唯一的输出端。
工具调用引擎的日志以 ``[TOOLIFY]`` 开头，便于单独过滤。
"""

import sys
from typing import Any, TextIO

import orjson
from loguru import logger

# 简洁格式用于生产环境和容器；详细格式带完整时间戳和行号，用于本地调试
COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <5}</level> | <cyan>{name}</cyan> - <level>{message}</level>"
VERBOSE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <5}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(
    log_level: str = "INFO",
    use_colors: bool = True,
    verbose: bool = False,
    sink: TextIO | Any = sys.stderr,
) -> int:
    """安装日志输出端，替换 loguru 默认的输出端。

    :param log_level: 日志级别（DEBUG/INFO/WARNING/ERROR/CRITICAL，大小写不敏感）
    :param use_colors: 是否输出颜色；关闭时格式中的颜色标记会被去掉
    :param verbose: 详细模式，输出完整时间戳、函数名和行号，并启用 backtrace
    :param sink: 输出目标，默认标准错误
    :return: loguru 输出端 ID

    .. note::
       ``diagnose`` 只在详细且彩色输出时开启，它会把局部变量写进异常日志，
       其中可能包含后端密钥。
    """
    logger.remove()
    return logger.add(
        sink,
        format=VERBOSE_FORMAT if verbose else COMPACT_FORMAT,
        level=log_level.upper(),
        colorize=use_colors,
        backtrace=verbose,
        diagnose=verbose and use_colors,
    )


def get_logger(name: str | None = None):
    """返回全局 loguru logger。

    ``name`` 只为保持 ``get_logger(__name__)`` 的写法，loguru 自己会记录模块名。
    日志消息使用 ``{}`` 占位符::

        logger.info("Backend request initiated: model={}, stream={}", model, stream)
    """
    return logger


def json_str(obj: Any, limit: int | None = 2000) -> str:
    """将对象序列化为适合写入日志的 JSON 字符串。

    :param obj: 任意可 JSON 序列化的对象，无法序列化的值使用 ``str()``
    :param limit: 最大长度，超出部分截断；``None`` 表示不截断
    :return: JSON 文本
    """
    try:
        text = orjson.dumps(obj, default=str).decode("utf-8")
    except TypeError:
        text = str(obj)
    if limit is not None and len(text) > limit:
        return f"{text[:limit]}...(truncated {len(text) - limit} chars)"
    return text
