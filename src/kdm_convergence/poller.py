"""有界指数バックオフによる収束待ち"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import TypeVar

import structlog

from .exceptions import PollCancelledError, PollTimeoutError
from .models import BackoffPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_MISSING = object()


def poll(
    fetch: Callable[[], T],
    predicate: Callable[[T], bool],
    policy: BackoffPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] | None = None,
    cancel: threading.Event | None = None,
    description: str = "",
) -> T:
    """predicate を満たす値が取得できるまで fetch を繰り返す。

    fetch が retry_on の例外を送出した場合は記録して次の試行へ進む。
    試行回数を使い切ったとき、最後の試行が失敗していればその例外を、
    そうでなければ PollTimeoutError を送出する。

    Args:
        fetch: 毎回新しく値を取得する関数
        predicate: 取得値が目的の状態か判定する関数
        policy: バックオフポリシー
        retry_on: リトライ対象とする例外型
        sleep: 待機関数。未指定なら time.sleep
        cancel: セットされると次の試行前に中断するイベント
        description: ログとエラーメッセージ用の説明

    Raises:
        PollTimeoutError: 条件が満たされないまま試行回数に達した場合
        PollCancelledError: cancel がセットされた場合
    """
    sleep = sleep or time.sleep
    last_value: object = _MISSING
    last_error: BaseException | None = None
    for attempt in range(policy.max_attempts):
        if cancel is not None and cancel.is_set():
            raise PollCancelledError(attempts=attempt)
        try:
            value = fetch()
        except retry_on as e:
            last_error = e
            logger.warning(
                "poll_fetch_failed",
                description=description,
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                error=str(e),
            )
        else:
            last_error = None
            last_value = value
            if predicate(value):
                logger.debug("poll_satisfied", description=description, attempt=attempt + 1)
                return value
            logger.info(
                "poll_waiting",
                description=description,
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                observed=value,
            )
        if attempt + 1 < policy.max_attempts:
            sleep(policy.compute_delay(attempt))

    if last_error is not None:
        raise last_error
    raise PollTimeoutError(
        attempts=policy.max_attempts,
        last_value=None if last_value is _MISSING else last_value,
        description=description,
    )
