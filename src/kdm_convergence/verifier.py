"""設定変更の全レプリカへの伝播を検証するオーケストレーター"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog
from opentelemetry import trace

from .exceptions import ApiError, PollTimeoutError
from .inspector import ReplicaInspector
from .models import (
    DEFAULT_BACKOFF,
    BackoffPolicy,
    VerificationOutcome,
    VerificationPlan,
    VerificationReport,
    VerificationState,
)
from .mutator import ConfigMutator
from .poller import poll
from .scaler import ReplicaScaler
from .versions import VersionReader

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class ConvergenceVerifier:
    """設定変更 → 観測値の変化待ち → 全レプリカ検査 を順に実行する。

    状態遷移:
        PREPARING → BASELINE → MUTATING → POLLING → {NO_CHANGE | INSPECTING} → DONE

    観測値が変化しなかった場合 (NO_CHANGE) は検査を行わず PASS とする。
    """

    def __init__(
        self,
        mutator: ConfigMutator,
        scaler: ReplicaScaler,
        inspector: ReplicaInspector,
        version_reader: VersionReader,
        policy: BackoffPolicy = DEFAULT_BACKOFF,
        *,
        sleep: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._mutator = mutator
        self._scaler = scaler
        self._inspector = inspector
        self._versions = version_reader
        self._policy = policy
        self._sleep = sleep
        self._cancel = cancel

    def _observe(self, plan: VerificationPlan) -> str:
        versions = self._versions.default_version(plan.cluster_type, plan.version_filters)
        if not versions:
            raise ApiError(f"no {plan.cluster_type} versions reported")
        return versions[0]

    def run(self, plan: VerificationPlan) -> VerificationReport:
        """検証を 1 回実行してレポートを返す。"""
        states: list[VerificationState] = []

        def enter(state: VerificationState) -> None:
            states.append(state)
            logger.info("verification_state", state=str(state), setting=plan.setting)

        with tracer.start_as_current_span("kdm_convergence.verify") as span:
            enter(VerificationState.PREPARING)
            with tracer.start_as_current_span("prepare"):
                if plan.source_value is not None:
                    self._mutator.update(plan.setting, plan.key, plan.source_value)
                self._scaler.scale_to(
                    plan.scale_target, self._policy, sleep=self._sleep, cancel=self._cancel
                )

            enter(VerificationState.BASELINE)
            with tracer.start_as_current_span("baseline"):
                before = poll(
                    lambda: self._observe(plan),
                    lambda _: True,
                    self._policy,
                    retry_on=(ApiError,),
                    description="baseline version",
                    sleep=self._sleep,
                    cancel=self._cancel,
                )
            logger.info("baseline_observed", before=before)

            enter(VerificationState.MUTATING)
            with tracer.start_as_current_span("mutate"):
                self._mutator.update(plan.setting, plan.key, plan.target_value)

            enter(VerificationState.POLLING)
            attempts = 0

            def fetch() -> str:
                nonlocal attempts
                attempts += 1
                return self._observe(plan)

            with tracer.start_as_current_span("poll"):
                try:
                    after = poll(
                        fetch,
                        lambda observed: observed != before,
                        self._policy,
                        retry_on=(ApiError,),
                        description=f"version to change from {before}",
                        sleep=self._sleep,
                        cancel=self._cancel,
                    )
                except PollTimeoutError:
                    after = before
            report = VerificationReport(
                before=before, after=after, states=states, poll_attempts=attempts
            )
            span.set_attribute("kdm.before", before)
            span.set_attribute("kdm.after", after)

            if after == before:
                # 変更前後で最新バージョンが同じ場合は検証対象がない
                enter(VerificationState.NO_CHANGE)
                logger.info("no_change_observed", value=before, attempts=attempts)
            else:
                enter(VerificationState.INSPECTING)
                logger.info("change_observed", before=before, after=after, attempts=attempts)
                with tracer.start_as_current_span("inspect"):
                    outputs = self._inspector.inspect(plan.selector, plan.command)
                if not outputs:
                    logger.warning(
                        "no_replicas_inspected",
                        namespace=plan.selector.namespace,
                        selector=plan.selector.label_selector,
                    )
                report.outcomes = [
                    VerificationOutcome(
                        replica=o.replica,
                        output=o.output,
                        matched=o.ok and after in o.output,
                        error=str(o.error) if o.error is not None else None,
                    )
                    for o in outputs
                ]
                for outcome in report.mismatches:
                    logger.error(
                        "replica_not_converged",
                        replica=outcome.replica,
                        expected=after,
                        error=outcome.error,
                    )

            enter(VerificationState.DONE)
            span.set_attribute("kdm.verdict", str(report.verdict))
            logger.info("verification_finished", verdict=str(report.verdict), summary=report.summary())
            return report
