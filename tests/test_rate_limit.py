import math

from email_verifier.services.rate_limit import MemoryRateLimitStore, RateLimiter, RateLimitRecord

WINDOW_MS = 300_000
MAX_REQUESTS = 10


def _limiter(clock, store=None) -> RateLimiter:
    return RateLimiter(window_ms=WINDOW_MS, max_requests=MAX_REQUESTS, store=store, clock=clock)


def test_admits_exactly_max_requests_then_rejects(clock):
    limiter = _limiter(clock)

    decisions = [limiter.admit("a@x.com") for _ in range(MAX_REQUESTS)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == list(range(MAX_REQUESTS - 1, -1, -1))

    rejected = limiter.admit("a@x.com")
    assert rejected.allowed is False
    assert rejected.retry_after == WINDOW_MS // 1000
    assert rejected.remaining == 0


def test_retry_after_counts_down_within_window(clock):
    limiter = _limiter(clock)
    for _ in range(MAX_REQUESTS):
        limiter.admit("a@x.com")

    clock.advance(120_500)
    rejected = limiter.admit("a@x.com")

    assert rejected.retry_after == math.ceil((WINDOW_MS - 120_500) / 1000)


def test_window_is_still_closed_at_exact_boundary(clock):
    limiter = _limiter(clock)
    for _ in range(MAX_REQUESTS):
        limiter.admit("a@x.com")

    clock.advance(WINDOW_MS)
    assert limiter.admit("a@x.com").allowed is False


def test_admission_resets_after_window_elapses(clock):
    limiter = _limiter(clock)
    for _ in range(MAX_REQUESTS + 3):
        limiter.admit("a@x.com")

    clock.advance(WINDOW_MS + 1)
    decision = limiter.admit("a@x.com")

    assert decision.allowed is True
    assert decision.remaining == MAX_REQUESTS - 1
    assert decision.reset_at == math.ceil((clock.now + WINDOW_MS) / 1000)


def test_emails_are_tracked_independently(clock):
    limiter = _limiter(clock)
    for _ in range(MAX_REQUESTS):
        limiter.admit("a@x.com")

    assert limiter.admit("a@x.com").allowed is False
    assert limiter.admit("A@x.com").allowed is True
    assert limiter.admit("b@x.com").allowed is True


def test_decision_headers(clock):
    limiter = _limiter(clock)
    limiter.admit("a@x.com")
    decision = limiter.admit("a@x.com")

    assert decision.headers() == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "8",
        "X-RateLimit-Reset": str(math.ceil((clock.now + WINDOW_MS) / 1000)),
    }


def test_stale_windows_are_pruned_on_access(clock):
    store = MemoryRateLimitStore()
    limiter = _limiter(clock, store)
    limiter.admit("old@x.com")

    clock.advance(WINDOW_MS + 1)
    limiter.admit("new@x.com")

    assert store.get("old@x.com") is None
    assert len(store) == 1


def test_memory_store_prune_and_clear():
    store = MemoryRateLimitStore()
    store.set("a", RateLimitRecord(count=1, window_start=100))
    store.set("b", RateLimitRecord(count=1, window_start=500))

    assert store.prune(200) == 1
    assert store.get("b") is not None

    store.clear()
    assert len(store) == 0
