from concurrent.futures import ThreadPoolExecutor

import pytest

from refhub.cache.response_cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(default_ttl=300, clock=clock)


def test_miss_returns_none(cache):
    assert cache.get(1, "/api/rewards") is None


def test_put_then_get(cache):
    cache.put(1, "/api/rewards", {"totalRewards": 0})

    assert cache.get(1, "/api/rewards") == {"totalRewards": 0}
    assert cache.get(2, "/api/rewards") is None


def test_empty_list_is_a_hit(cache):
    cache.put(1, "/api/referrals", [])

    assert cache.get(1, "/api/referrals") == []


def test_entry_expires_after_ttl(cache, clock):
    cache.put(1, "/api/rewards", "value")

    clock.advance(299)
    assert cache.get(1, "/api/rewards") == "value"

    clock.advance(1)
    assert cache.get(1, "/api/rewards") is None
    assert len(cache) == 0


def test_per_entry_ttl(cache, clock):
    cache.put(1, "/short", "a", ttl_seconds=10)
    cache.put(1, "/long", "b")

    clock.advance(11)

    assert cache.get(1, "/short") is None
    assert cache.get(1, "/long") == "b"


def test_invalidate_all_drops_only_that_identity(cache):
    cache.put(1, "/api/referrals", [])
    cache.put(1, "/api/rewards", "r")
    cache.put(2, "/api/rewards", "other")

    assert cache.invalidate_all(1) == 2
    assert cache.get(1, "/api/referrals") is None
    assert cache.get(1, "/api/rewards") is None
    assert cache.get(2, "/api/rewards") == "other"


def test_invalidate_unknown_identity(cache):
    assert cache.invalidate_all(42) == 0


def test_none_is_not_cacheable(cache):
    with pytest.raises(ValueError):
        cache.put(1, "/api/rewards", None)


def test_get_or_load_calls_loader_once(cache, mocker):
    loader = mocker.Mock(return_value={"successful_referrals": 3})

    first = cache.get_or_load(1, "/api/referral-stats", loader)
    second = cache.get_or_load(1, "/api/referral-stats", loader)

    assert first == second == {"successful_referrals": 3}
    loader.assert_called_once()


def test_get_or_load_reloads_after_invalidation(cache, mocker):
    loader = mocker.Mock(side_effect=[1, 2])

    assert cache.get_or_load(1, "/x", loader) == 1
    cache.invalidate_all(1)
    assert cache.get_or_load(1, "/x", loader) == 2


def test_purge_expired(cache, clock):
    cache.put(1, "/a", "a", ttl_seconds=5)
    cache.put(1, "/b", "b", ttl_seconds=50)
    cache.put(2, "/a", "a", ttl_seconds=5)

    clock.advance(10)

    assert cache.purge_expired() == 2
    assert len(cache) == 1


def test_clear(cache):
    cache.put(1, "/a", "a")
    cache.put(2, "/a", "a")

    cache.clear()

    assert len(cache) == 0


def test_concurrent_access_keeps_cache_consistent():
    cache = ResponseCache(default_ttl=300)
    identities = range(8)
    paths = [f"/api/resource/{i}" for i in range(20)]

    def churn(worker):
        for round_ in range(200):
            identity = (worker + round_) % len(identities)
            path = paths[round_ % len(paths)]
            cache.put(identity, path, {"worker": worker, "round": round_})
            cache.get(identity, path)
            if round_ % 25 == 0:
                cache.invalidate_all((identity + 1) % len(identities))
            if round_ % 40 == 0:
                cache.purge_expired()
        return worker

    with ThreadPoolExecutor(max_workers=16) as pool:
        finished = list(pool.map(churn, range(32)))

    assert finished == list(range(32))

    surviving = sum(
        1 for identity in identities for path in paths if cache.get(identity, path) is not None
    )
    assert len(cache) == surviving
    assert surviving <= len(identities) * len(paths)

    for identity in identities:
        cache.invalidate_all(identity)
    assert len(cache) == 0
