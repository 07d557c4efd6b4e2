"""Backoff policy tests."""
import pytest

from straico_proxy.providers.retry import RetryPolicy


@pytest.mark.parametrize("rand", [lambda a, b: a, lambda a, b: b, lambda a, b: (a + b) / 2])
def test_delays_strictly_increase(rand):
    policy = RetryPolicy(max_retries=6, base_delay=0.5, jitter=0.99, rand=rand)

    delays = [policy.delay(n) for n in range(policy.max_retries)]

    assert all(later > earlier for earlier, later in zip(delays, delays[1:]))


def test_delay_is_bounded():
    policy = RetryPolicy(max_retries=3, base_delay=1.0, jitter=0.5, rand=lambda a, b: b)
    assert policy.delay(0) == 1.5
    assert policy.delay(2) == 6.0


def test_attempts_include_first_call():
    assert RetryPolicy(max_retries=3, base_delay=0.1, jitter=0.0).max_attempts == 4


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1, "base_delay": 0.1, "jitter": 0.1},
        {"max_retries": 1, "base_delay": 0, "jitter": 0.1},
        {"max_retries": 1, "base_delay": 0.1, "jitter": 1.0},
    ],
)
def test_rejects_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_from_settings(settings):
    policy = RetryPolicy.from_settings(settings)
    assert policy.max_retries == settings.UPSTREAM_MAX_RETRIES
    assert policy.base_delay == settings.UPSTREAM_RETRY_BASE_DELAY
