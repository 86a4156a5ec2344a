import time

from restopos.ratelimit import StorageRateLimiter


def test_blocks_after_limit_within_window():
    limiter = StorageRateLimiter(limit=3, window_seconds=60)
    assert [limiter.attempt("login:1.2.3.4:bob") for _ in range(4)] == [True, True, True, False]


def test_window_expiry_allows_again():
    limiter = StorageRateLimiter(limit=1, window_seconds=1)
    assert limiter.attempt("k") is True
    assert limiter.attempt("k") is False
    time.sleep(1.2)
    assert limiter.attempt("k") is True


def test_keys_are_independent_and_reset():
    limiter = StorageRateLimiter(limit=1, window_seconds=60)
    assert limiter.attempt("a") is True
    assert limiter.attempt("b") is True
    assert limiter.attempt("a") is False
    limiter.reset("a")
    assert limiter.attempt("a") is True


def test_limiters_with_separate_storage_do_not_share_counts():
    first = StorageRateLimiter(limit=1, window_seconds=60)
    second = StorageRateLimiter(limit=1, window_seconds=60)
    assert first.attempt("a") is True
    assert second.attempt("a") is True
