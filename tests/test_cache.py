from thread_locator.cache import PendingLinkCache


def test_push_ignores_known_ids() -> None:
    cache = PendingLinkCache()
    cache.push(["100", "200"])
    cache.push(["200", "300", "100"])
    cache.push("300")

    assert len(cache) == 3
    assert "200" in cache
    assert "400" not in cache


def test_drain_all_returns_each_id_once_and_empties() -> None:
    cache = PendingLinkCache()
    cache.push(["1", "2", "2", "3"])
    cache.push(["3", "4"])

    drained = cache.drain_all()

    assert sorted(drained) == ["1", "2", "3", "4"]
    assert len(cache) == 0
    assert cache.drain_all() == []


def test_ids_pushed_after_drain_are_kept() -> None:
    cache = PendingLinkCache()
    cache.push("1")
    assert cache.drain_all() == ["1"]

    cache.push(["1", "5"])
    assert sorted(cache.drain_all()) == ["1", "5"]


def test_empty_ids_are_skipped() -> None:
    cache = PendingLinkCache()
    cache.push(["", "7"])

    assert cache.drain_all() == ["7"]
