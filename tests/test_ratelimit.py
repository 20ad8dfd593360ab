import pytest

from imgtools.ratelimit import LeakyBucket, TokenBucket


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_token_bucket_allows_burst_then_rejects():
    clock = FakeClock()
    bucket = TokenBucket(50, 20, clock)
    results = [bucket.allow() for _ in range(20)]
    assert all(results)
    assert bucket.allow() is False


def test_token_bucket_refills_over_time():
    clock = FakeClock()
    bucket = TokenBucket(2, 1, clock)
    assert bucket.allow() is True
    assert bucket.allow() is False
    clock.now += 0.5
    assert bucket.allow() is True
    assert bucket.allow() is False


def test_token_bucket_never_exceeds_burst():
    clock = FakeClock()
    bucket = TokenBucket(2, 3, clock)
    clock.now += 1000
    allowed = sum(bucket.allow() for _ in range(10))
    assert allowed == 3


def test_token_bucket_zero_burst_allows_nothing():
    clock = FakeClock()
    bucket = TokenBucket(5, 0, clock)
    clock.now += 10
    assert bucket.allow() is False


@pytest.mark.parametrize("rate,burst", [(0, 1), (-1, 1), (1, -1)])
def test_token_bucket_rejects_bad_arguments(rate, burst):
    with pytest.raises(ValueError):
        TokenBucket(rate, burst)


def test_leaky_bucket_first_take_does_not_wait():
    clock = FakeClock()
    bucket = LeakyBucket(1, clock, clock.sleep)
    assert bucket.take() == clock.now
    assert clock.sleeps == []


def test_leaky_bucket_spaces_events():
    clock = FakeClock()
    bucket = LeakyBucket(1, clock, clock.sleep)
    first = bucket.take()
    second = bucket.take()
    third = bucket.take()
    assert clock.sleeps == [pytest.approx(1.0), pytest.approx(1.0)]
    assert second - first == pytest.approx(1.0)
    assert third - second == pytest.approx(1.0)


def test_leaky_bucket_no_wait_after_idle():
    clock = FakeClock()
    bucket = LeakyBucket(4, clock, clock.sleep)
    bucket.take()
    clock.now += 2
    passed = bucket.take()
    assert clock.sleeps == []
    assert passed == clock.now


def test_leaky_bucket_rejects_bad_rate():
    with pytest.raises(ValueError):
        LeakyBucket(0)