from concurrent.futures import ThreadPoolExecutor

from conftest import T0
from services.rate_limiter import DAY_SECONDS, RateLimiter


def test_fresh_limiter_reports_full_budget(clock):
    limiter = RateLimiter("news", daily_limit=80, clock=clock)

    status = limiter.status()

    assert status.used == 0
    assert status.remaining == 80
    assert status.reset_time == T0 + DAY_SECONDS


def test_allow_request_does_not_consume_budget(clock):
    limiter = RateLimiter("news", daily_limit=2, clock=clock)

    for _ in range(5):
        assert limiter.allow_request() is True

    assert limiter.status().used == 0


def test_budget_exhausted_after_daily_limit(clock):
    limiter = RateLimiter("exchange_rates", daily_limit=30, clock=clock)

    for _ in range(30):
        assert limiter.allow_request()
        limiter.record_request()

    assert limiter.allow_request() is False
    clock.advance(DAY_SECONDS - 1)
    assert limiter.allow_request() is False
    status = limiter.status()
    assert status.used == 30
    assert status.remaining == 0


def test_window_rolls_after_24_hours(clock):
    limiter = RateLimiter("exchange_rates", daily_limit=30, clock=clock)
    for _ in range(30):
        limiter.record_request()

    clock.advance(25 * 3600)
    status = limiter.status()

    assert status.used == 0
    assert status.remaining == 30
    assert status.reset_time == clock.now + DAY_SECONDS
    assert limiter.allow_request() is True


def test_window_does_not_roll_exactly_at_24_hours(clock):
    limiter = RateLimiter("news", daily_limit=1, clock=clock)
    limiter.record_request()

    clock.advance(DAY_SECONDS)
    assert limiter.allow_request() is False

    clock.advance(0.001)
    assert limiter.allow_request() is True


def test_remaining_never_negative(clock):
    limiter = RateLimiter("news", daily_limit=1, clock=clock)
    limiter.record_request()
    limiter.record_request()

    assert limiter.status().remaining == 0


def test_status_wire_format_uses_milliseconds(clock):
    limiter = RateLimiter("news", daily_limit=80, clock=clock)
    limiter.record_request()

    assert limiter.status().to_dict() == {
        "used": 1,
        "remaining": 79,
        "resetTime": int((T0 + DAY_SECONDS) * 1000),
    }


def test_concurrent_record_requests_are_all_counted(clock):
    limiter = RateLimiter("news", daily_limit=10**6, clock=clock)

    def record(n):
        for _ in range(n):
            limiter.allow_request()
            limiter.record_request()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record, [5000] * 8))

    status = limiter.status()
    assert status.used == 40000
    assert status.remaining == 10**6 - 40000
