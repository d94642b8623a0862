"""Deployment のスケールと準備完了待ち"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

from .cluster_api import ClusterApi
from .exceptions import ApiError, PollTimeoutError, ScaleTimeoutError
from .models import DEFAULT_BACKOFF, BackoffPolicy, DeploymentStatus, ScaleTarget
from .poller import poll

logger = structlog.get_logger(__name__)


class ReplicaScaler:
    """Deployment を目標レプリカ数へスケールし、準備完了まで待つ。"""

    def __init__(self, cluster_api: ClusterApi) -> None:
        self._api = cluster_api

    def scale_to(
        self,
        target: ScaleTarget,
        policy: BackoffPolicy = DEFAULT_BACKOFF,
        *,
        sleep: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> DeploymentStatus:
        """target.replicas へスケールする。

        既に目標レプリカ数が一致していれば書き込みせずに返す。

        Raises:
            ScaleTimeoutError: 試行回数内に準備完了レプリカ数が一致しなかった場合
            ApiError: 最後の取得が API エラーで終わった場合
            PollCancelledError: cancel がセットされた場合
        """
        ref = f"{target.namespace}/{target.name}"
        current = self._api.get_deployment(target.namespace, target.name)
        if current.desired_replicas == target.replicas:
            logger.info("deployment_already_scaled", deployment=ref, replicas=target.replicas)
            return current

        self._api.scale_deployment(target.namespace, target.name, target.replicas)
        logger.info(
            "deployment_scaling",
            deployment=ref,
            previous=current.desired_replicas,
            replicas=target.replicas,
        )

        observed: list[DeploymentStatus] = []

        def fetch() -> DeploymentStatus:
            status = self._api.get_deployment(target.namespace, target.name)
            observed.append(status)
            return status

        try:
            status = poll(
                fetch,
                lambda s: s.ready_replicas == target.replicas,
                policy,
                retry_on=(ApiError,),
                description=f"deployment {ref} to have {target.replicas} ready replicas",
                sleep=sleep,
                cancel=cancel,
            )
        except PollTimeoutError as e:
            raise ScaleTimeoutError(
                namespace=target.namespace,
                name=target.name,
                desired=target.replicas,
                last_status=observed[-1] if observed else None,
                attempts=e.attempts,
                cause=e,
            ) from e
        logger.info("deployment_scaled", deployment=ref, replicas=status.ready_replicas)
        return status
