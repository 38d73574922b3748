import pytest

from exceptions import PermanentServiceError, TransientServiceError
from tools.retry import RetryPolicy


def flaky(failures):
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        if failures:
            raise failures.pop(0)
        return "done"

    return fn, calls


def test_backoff_is_exponential_and_capped():
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
    assert [policy.backoff(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_retry_after_overrides_backoff():
    slept = []
    fn, calls = flaky([TransientServiceError("429", retry_after=3), TransientServiceError("503")])
    assert RetryPolicy(max_attempts=3, sleep=slept.append).call(fn) == "done"
    assert slept == [3.0, 2.0]
    assert calls["n"] == 3


def test_gives_up_with_last_error():
    fn, calls = flaky([TransientServiceError("one"), TransientServiceError("two")])
    with pytest.raises(TransientServiceError, match="two"):
        RetryPolicy(max_attempts=2, sleep=lambda s: None).call(fn)
    assert calls["n"] == 2


def test_permanent_errors_are_raised_immediately():
    fn, calls = flaky([PermanentServiceError("401")])
    with pytest.raises(PermanentServiceError):
        RetryPolicy(max_attempts=3, sleep=lambda s: None).call(fn)
    assert calls["n"] == 1
