"""处理器缓存单元测试。"""

import threading

import pytest

from toolbridge_svc.services.chat.handler_cache import HandlerCache, get_handler_cache, reset_handler_cache
from toolbridge_svc.services.chat.orchestrator import RoundOrchestrator
from tests.fixtures import FakeBackend


def make_orchestrator() -> RoundOrchestrator:
    return RoundOrchestrator(FakeBackend(), max_rounds=3)


@pytest.mark.unit
class TestHandlerCache:
    """HandlerCache 类测试。"""

    def test_create_if_absent(self):
        cache = HandlerCache(max_size=4)
        calls = []

        def factory():
            calls.append(1)
            return make_orchestrator()

        first = cache.get_or_create(("http://a", "m"), factory)
        second = cache.get_or_create(("http://a", "m"), factory)

        assert first is second
        assert len(calls) == 1
        assert len(cache) == 1

    def test_keys_are_target_and_model(self):
        cache = HandlerCache()

        a = cache.get_or_create(("http://a", "m1"), make_orchestrator)
        b = cache.get_or_create(("http://a", "m2"), make_orchestrator)
        c = cache.get_or_create(("http://b", "m1"), make_orchestrator)

        assert len({id(a), id(b), id(c)}) == 3

    def test_lru_eviction(self):
        cache = HandlerCache(max_size=2)
        cache.get_or_create(("t", "a"), make_orchestrator)
        cache.get_or_create(("t", "b"), make_orchestrator)

        # 访问 a，使 b 成为最久未使用
        cache.get(("t", "a"))
        cache.get_or_create(("t", "c"), make_orchestrator)

        assert ("t", "a") in cache
        assert ("t", "b") not in cache
        assert ("t", "c") in cache
        assert len(cache) == 2

    def test_get_missing(self):
        assert HandlerCache().get(("t", "missing")) is None

    def test_clear(self):
        cache = HandlerCache()
        cache.get_or_create(("t", "a"), make_orchestrator)

        cache.clear()

        assert len(cache) == 0

    def test_concurrent_creation_converges(self):
        """并发创建同一键时所有调用方拿到同一个实例。"""
        cache = HandlerCache()
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(cache.get_or_create(("t", "a"), make_orchestrator))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(r) for r in results}) == 1
        assert len(cache) == 1


@pytest.mark.unit
class TestGlobalHandlerCache:
    """全局缓存单例测试。"""

    def test_singleton(self):
        assert get_handler_cache() is get_handler_cache()

    def test_reset(self):
        first = get_handler_cache()

        reset_handler_cache()

        assert get_handler_cache() is not first

    def test_first_size_wins(self):
        cache = get_handler_cache(5)

        assert get_handler_cache(99) is cache
        assert cache.max_size == 5
