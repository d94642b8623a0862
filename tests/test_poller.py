"""poll のユニットテスト"""

import threading

import pytest
from conftest import SleepRecorder
from kdm_convergence.exceptions import ApiError, PollCancelledError, PollTimeoutError
from kdm_convergence.models import BackoffPolicy
from kdm_convergence.poller import poll


def test_returns_immediately_without_sleeping(sleeps: SleepRecorder) -> None:
    """1 回目で条件を満たせば待機しない。"""
    calls = 0

    def fetch() -> str:
        nonlocal calls
        calls += 1
        return "ready"

    result = poll(fetch, lambda v: v == "ready", BackoffPolicy(max_attempts=5), sleep=sleeps)
    assert result == "ready"
    assert calls == 1
    assert sleeps.calls == []


def test_succeeds_after_several_attempts(sleeps: SleepRecorder) -> None:
    values = iter([1, 2, 3, 4])
    policy = BackoffPolicy(initial_delay=1.0, factor=2.0, max_attempts=5)
    result = poll(lambda: next(values), lambda v: v >= 3, policy, sleep=sleeps)
    assert result == 3
    assert sleeps.calls == [1.0, 2.0]


@pytest.mark.parametrize(
    "initial_delay,factor,attempts",
    [(0.5, 1.5, 1), (1.0, 2.0, 4), (0.1, 3.0, 7), (2.0, 1.1, 10)],
)
def test_attempt_and_sleep_bounds(
    initial_delay: float, factor: float, attempts: int, sleeps: SleepRecorder
) -> None:
    """最大 n 回取得し、待機は n−1 回以下で単調非減少。"""
    calls = 0

    def fetch() -> int:
        nonlocal calls
        calls += 1
        return calls

    policy = BackoffPolicy(initial_delay=initial_delay, factor=factor, max_attempts=attempts)
    with pytest.raises(PollTimeoutError) as exc_info:
        poll(fetch, lambda _: False, policy, sleep=sleeps)

    assert calls == attempts
    assert len(sleeps.calls) == attempts - 1
    assert all(b >= a for a, b in zip(sleeps.calls, sleeps.calls[1:]))
    assert sum(sleeps.calls) <= policy.total_wait_bound
    assert exc_info.value.attempts == attempts
    assert exc_info.value.last_value == attempts


def test_fetch_errors_are_retried(sleeps: SleepRecorder) -> None:
    """リトライ対象の例外では中断しない。"""
    outcomes: list = [ApiError("flaky"), ApiError("flaky"), "ok"]

    def fetch() -> str:
        item = outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    result = poll(fetch, lambda v: v == "ok", BackoffPolicy(max_attempts=5), sleep=sleeps)
    assert result == "ok"
    assert len(sleeps.calls) == 2


def test_last_fetch_error_surfaces_when_budget_exhausted(sleeps: SleepRecorder) -> None:
    """最後の試行が失敗していればその例外が送出される。"""
    errors = [ApiError(f"attempt {i}") for i in range(3)]

    def fetch() -> str:
        raise errors.pop(0)

    with pytest.raises(ApiError) as exc_info:
        poll(fetch, lambda _: True, BackoffPolicy(max_attempts=3), sleep=sleeps)
    assert "attempt 2" in str(exc_info.value)
    assert len(sleeps.calls) == 2


def test_timeout_when_last_attempt_fetched_a_value(sleeps: SleepRecorder) -> None:
    """途中で失敗しても最後に値を取得できていれば PollTimeoutError。"""
    outcomes: list = [ApiError("flaky"), "old", "old"]

    def fetch() -> str:
        item = outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    with pytest.raises(PollTimeoutError) as exc_info:
        poll(fetch, lambda v: v == "new", BackoffPolicy(max_attempts=3), sleep=sleeps)
    assert exc_info.value.last_value == "old"


def test_non_retryable_error_propagates_immediately(sleeps: SleepRecorder) -> None:
    calls = 0

    def fetch() -> str:
        nonlocal calls
        calls += 1
        raise KeyError("missing")

    with pytest.raises(KeyError):
        poll(fetch, lambda _: True, BackoffPolicy(max_attempts=5), retry_on=(ApiError,), sleep=sleeps)
    assert calls == 1
    assert sleeps.calls == []


def test_cancel_checked_before_each_attempt(sleeps: SleepRecorder) -> None:
    """cancel がセットされると次の試行前に中断する。"""
    cancel = threading.Event()
    calls = 0

    def fetch() -> int:
        nonlocal calls
        calls += 1
        if calls == 2:
            cancel.set()
        return calls

    with pytest.raises(PollCancelledError) as exc_info:
        poll(fetch, lambda _: False, BackoffPolicy(max_attempts=10), sleep=sleeps, cancel=cancel)
    assert calls == 2
    assert exc_info.value.attempts == 2


def test_generic_over_fetched_type(sleeps: SleepRecorder) -> None:
    snapshots = iter([{"ready": 1}, {"ready": 3}])
    result = poll(lambda: next(snapshots), lambda s: s["ready"] == 3, BackoffPolicy(), sleep=sleeps)
    assert result == {"ready": 3}
