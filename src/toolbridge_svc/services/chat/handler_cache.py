"""处理器缓存模块。

按 ``(后端地址, 模型名)`` 缓存 :class:`~.orchestrator.RoundOrchestrator`，
超出容量时淘汰最久未使用的条目。
"""

import threading
from collections import OrderedDict
from typing import Callable, Optional

from .orchestrator import RoundOrchestrator
from ...logger import get_logger

logger = get_logger(__name__)

CacheKey = tuple[str, str]


class HandlerCache:
    """编排器 LRU 缓存。

    编排器除不可变配置外没有状态，并发创建同一键时后写入的实例会被丢弃，
    调用方拿到的总是缓存中的那一个。

    :param max_size: 最大条目数
    """

    def __init__(self, max_size: int = 128):
        self.max_size = max_size
        self._data: OrderedDict[CacheKey, RoundOrchestrator] = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._data

    def get(self, key: CacheKey) -> Optional[RoundOrchestrator]:
        """获取缓存的编排器，命中时更新 LRU 顺序。"""
        with self._lock:
            handler = self._data.get(key)
            if handler is not None:
                self._data.move_to_end(key)
            return handler

    def get_or_create(self, key: CacheKey, factory: Callable[[], RoundOrchestrator]) -> RoundOrchestrator:
        """获取编排器，不存在时用 ``factory`` 创建。

        :param key: ``(后端地址, 模型名)``
        :param factory: 无参工厂函数
        :return: 缓存中的编排器
        """
        handler = self.get(key)
        if handler is not None:
            return handler

        created = factory()

        with self._lock:
            # 其他线程可能已经写入
            existing = self._data.get(key)
            if existing is not None:
                self._data.move_to_end(key)
                return existing

            while len(self._data) >= self.max_size:
                oldest_key, _ = self._data.popitem(last=False)
                logger.debug("Handler evicted: target={}, model={}", *oldest_key)

            self._data[key] = created
            logger.info("Handler created: target={}, model={}, cached={}", key[0], key[1], len(self._data))
            return created

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


# 全局缓存实例
_handler_cache: Optional[HandlerCache] = None
_cache_lock = threading.Lock()


def get_handler_cache(max_size: int = 128) -> HandlerCache:
    """获取全局处理器缓存（单例模式）。

    :param max_size: 首次创建时使用的容量
    :return: 缓存实例
    """
    global _handler_cache

    if _handler_cache is None:
        with _cache_lock:
            if _handler_cache is None:
                _handler_cache = HandlerCache(max_size)

    return _handler_cache


def reset_handler_cache() -> None:
    """丢弃全局缓存实例（配置变化或测试时使用）。"""
    global _handler_cache

    with _cache_lock:
        _handler_cache = None
