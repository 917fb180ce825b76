import asyncio

import pytest

from optimizer.services.ratelimit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(round(seconds, 3))
        self.now += seconds


def test_calls_within_budget_do_not_wait():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=3, period=1.0, clock=clock, sleep=clock.sleep)

    async def main():
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(main())
    assert clock.sleeps == []
    assert limiter.in_window() == 3


def test_excess_calls_wait_for_the_window_to_slide():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=2, period=1.0, clock=clock, sleep=clock.sleep)

    async def main():
        await limiter.acquire()
        clock.now += 0.25
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(main())
    # third call waits until the first one leaves the window
    assert clock.sleeps == [0.75]
    assert limiter.in_window() == 2


def test_never_more_than_max_calls_in_any_window():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=10, period=1.0, clock=clock, sleep=clock.sleep)
    stamps = []

    async def main():
        for _ in range(35):
            await limiter.acquire()
            stamps.append(clock.now)

    asyncio.run(main())
    for i, start in enumerate(stamps):
        assert sum(1 for t in stamps[i:] if t - start < 1.0) <= 10


def test_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        RateLimiter(max_calls=0)
