from fareplay.registry.ratelimit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


def test_burst_then_refill():
    clock = FakeClock()
    rl = RateLimiter(3, window_s=3.0, clock=clock)

    assert [rl.allow("a") for _ in range(4)] == [True, True, True, False]

    clock.t += 1.0  # one token back
    assert rl.allow("a") is True
    assert rl.allow("a") is False


def test_keys_are_independent():
    clock = FakeClock()
    rl = RateLimiter(1, window_s=60.0, clock=clock)

    assert rl.allow("a") is True
    assert rl.allow("a") is False
    assert rl.allow("b") is True


def test_refill_is_capped_at_limit():
    clock = FakeClock()
    rl = RateLimiter(2, window_s=1.0, clock=clock)
    rl.allow("a")

    clock.t += 3600.0
    assert [rl.allow("a") for _ in range(3)] == [True, True, False]


def test_idle_buckets_are_dropped():
    clock = FakeClock()
    rl = RateLimiter(5, window_s=1.0, idle_ttl_s=10.0, clock=clock)
    rl.allow("a")

    clock.t += 11.0
    rl.allow("b")

    assert "a" not in rl._buckets
    assert "b" in rl._buckets
