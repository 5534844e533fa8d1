from saas_control.services.rate_limiter import InMemoryRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_per_window():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)
    windows = [(2, 60)]

    assert limiter.allow("sign-in:1.2.3.4", windows) is True
    assert limiter.allow("sign-in:1.2.3.4", windows) is True
    assert limiter.allow("sign-in:1.2.3.4", windows) is False

    clock.now += 61
    assert limiter.allow("sign-in:1.2.3.4", windows) is True


def test_keys_are_independent():
    limiter = InMemoryRateLimiter(clock=FakeClock())
    assert limiter.allow("a", [(1, 60)]) is True
    assert limiter.allow("a", [(1, 60)]) is False
    assert limiter.allow("b", [(1, 60)]) is True


def test_rejected_attempt_is_not_counted_against_other_windows():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)
    windows = [(1, 60), (3, 3600)]

    assert limiter.allow("k", windows) is True
    # Rejected by the minute window; must not use up the hourly budget
    assert limiter.allow("k", windows) is False
    assert limiter.allow("k", windows) is False

    clock.now += 61
    assert limiter.allow("k", windows) is True
    clock.now += 61
    assert limiter.allow("k", windows) is True
    clock.now += 61
    assert limiter.allow("k", windows) is False


def test_reset_clears_history():
    limiter = InMemoryRateLimiter(clock=FakeClock())
    assert limiter.allow("k", [(1, 60)]) is True
    limiter.reset()
    assert limiter.allow("k", [(1, 60)]) is True
