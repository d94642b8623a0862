"""収束検証ハーネスのデータモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .exceptions import ConvergenceFailedError, ExecFailure


@dataclass(frozen=True)
class BackoffPolicy:
    """指数バックオフのリトライポリシー。

    k 回目の待機時間は ``initial_delay * factor ** k``。
    ``max_attempts`` 回の取得に対して待機は最大 ``max_attempts - 1`` 回。
    """

    initial_delay: float = 1.0
    factor: float = 2.0
    max_attempts: int = 7
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.factor <= 1:
            raise ValueError(f"factor must be greater than 1, got {self.factor}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must not be negative, got {self.initial_delay}")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError(f"max_delay must not be negative, got {self.max_delay}")

    def compute_delay(self, attempt: int) -> float:
        """attempt 回目の失敗後の待機秒数を計算する。"""
        delay = self.initial_delay * (self.factor**attempt)
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay

    def delays(self) -> list[float]:
        """試行間に発生しうる待機時間の一覧を返す。"""
        return [self.compute_delay(k) for k in range(self.max_attempts - 1)]

    @property
    def total_wait_bound(self) -> float:
        """initial × (factor^attempts − 1)/(factor − 1)。全待機時間の上限。"""
        return self.initial_delay * (self.factor**self.max_attempts - 1) / (self.factor - 1)


DEFAULT_BACKOFF = BackoffPolicy(initial_delay=1.0, factor=2.0, max_attempts=7)


@dataclass
class Setting:
    """外部に保存された名前付き設定。値は文字列→文字列のマッピング。"""

    name: str
    value: dict[str, str]
    document: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class ScaleTarget:
    """スケール対象の Deployment と目標レプリカ数。"""

    namespace: str
    name: str
    replicas: int

    def __post_init__(self) -> None:
        if self.replicas < 0:
            raise ValueError(f"replicas must not be negative, got {self.replicas}")


@dataclass(frozen=True)
class DeploymentStatus:
    """Deployment の観測値。"""

    desired_replicas: int
    ready_replicas: int


@dataclass(frozen=True)
class ReplicaSelector:
    """検査対象のレプリカを選ぶ条件。"""

    namespace: str
    label_selector: str
    container: str


@dataclass(frozen=True)
class ExecResult:
    """リモートコマンドの生出力。"""

    stdout: str
    stderr: str = ""
    returncode: int | None = 0


@dataclass
class ReplicaOutput:
    """ReplicaInspector が 1 レプリカについて取得した結果。"""

    replica: str
    output: str
    error: ExecFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class VerificationOutcome:
    """レプリカごとの検証結果。"""

    replica: str
    output: str
    matched: bool
    error: str | None = None


class VerificationState(StrEnum):
    """ConvergenceVerifier の状態。"""

    PREPARING = "preparing"
    BASELINE = "baseline"
    MUTATING = "mutating"
    POLLING = "polling"
    NO_CHANGE = "no_change"
    INSPECTING = "inspecting"
    DONE = "done"


class Verdict(StrEnum):
    """検証の最終判定。"""

    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class VerificationPlan:
    """1 回の検証実行に必要な入力。"""

    setting: str
    key: str
    target_value: str
    scale_target: ScaleTarget
    selector: ReplicaSelector
    command: list[str]
    cluster_type: str = "rke2"
    version_filters: list[str] = field(default_factory=list)
    source_value: str | None = None


@dataclass
class VerificationReport:
    """検証結果の集約レポート。"""

    before: str
    after: str
    states: list[VerificationState] = field(default_factory=list)
    outcomes: list[VerificationOutcome] = field(default_factory=list)
    poll_attempts: int = 0

    @property
    def changed(self) -> bool:
        return self.after != self.before

    @property
    def mismatches(self) -> list[VerificationOutcome]:
        """新しい値を反映していないレプリカ。"""
        return [o for o in self.outcomes if not o.matched]

    @property
    def verdict(self) -> Verdict:
        if not self.changed:
            return Verdict.PASS
        if self.mismatches:
            return Verdict.FAIL
        return Verdict.PASS

    @property
    def passed(self) -> bool:
        return self.verdict == Verdict.PASS

    def summary(self) -> str:
        """人間向けの判定サマリーを返す。"""
        if not self.changed:
            return f"observed value stayed at {self.before!r}; nothing to assert"
        if not self.outcomes:
            return (
                f"observed value changed {self.before!r} -> {self.after!r} "
                "but no replicas were inspected; nothing to assert"
            )
        if not self.mismatches:
            return (
                f"all {len(self.outcomes)} replicas report {self.after!r} "
                f"(was {self.before!r})"
            )
        lines = [
            f"{len(self.mismatches)}/{len(self.outcomes)} replicas do not report {self.after!r}:"
        ]
        for outcome in self.mismatches:
            detail = outcome.error or outcome.output.strip() or "<empty output>"
            lines.append(f"  {outcome.replica}: {detail}")
        return "\n".join(lines)

    def raise_for_verdict(self) -> None:
        """判定が FAIL なら ConvergenceFailedError を送出する。"""
        if self.verdict == Verdict.FAIL:
            raise ConvergenceFailedError(self)
