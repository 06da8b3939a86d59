import pytest

from theoindex.providers import rate_limiter
from theoindex.providers.rate_limiter import YahooRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.slept = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(rate_limiter.time, "monotonic", fake.monotonic)
    monkeypatch.setattr(rate_limiter.time, "sleep", fake.sleep)
    return fake


def test_first_call_does_not_wait(clock):
    assert YahooRateLimiter(min_interval=1.0).wait_if_needed() == 0.0
    assert clock.slept == []


def test_back_to_back_calls_are_spaced(clock):
    limiter = YahooRateLimiter(min_interval=1.0)
    limiter.wait_if_needed()
    clock.now += 0.25

    assert limiter.wait_if_needed() == pytest.approx(0.75)
    assert clock.slept == [pytest.approx(0.75)]


def test_idle_time_counts_toward_the_interval(clock):
    limiter = YahooRateLimiter(min_interval=1.0)
    limiter.wait_if_needed()
    clock.now += 5.0

    assert limiter.wait_if_needed() == 0.0
