from issuesteward.pacing import DEFAULT_DELAY_SECONDS, ExponentialBackoff, FixedDelay


def test_fixed_delay_skips_first_step():
    policy = FixedDelay()
    assert policy.delay_for(0) == 0.0
    assert policy.delay_for(1) == DEFAULT_DELAY_SECONDS
    assert policy.delay_for(7) == DEFAULT_DELAY_SECONDS


def test_fixed_delay_never_negative():
    assert FixedDelay(-1).delay_for(3) == 0.0


def test_exponential_backoff_grows_and_caps():
    policy = ExponentialBackoff(base_seconds=0.5, max_seconds=3.0, jitter_seconds=0)
    assert [policy.delay_for(step) for step in range(6)] == [0.0, 0.5, 1.0, 2.0, 3.0, 3.0]


def test_exponential_backoff_jitter_is_bounded():
    policy = ExponentialBackoff(base_seconds=1.0, max_seconds=10.0, jitter_seconds=0.25)
    for _ in range(20):
        delay = policy.delay_for(2)
        assert 2.0 <= delay <= 2.25
