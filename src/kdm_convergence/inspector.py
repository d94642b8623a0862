"""レプリカごとのリモートコマンド実行"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import structlog

from .cluster_api import ClusterApi
from .exceptions import ConvergenceError, ExecFailure, ListError
from .models import ReplicaOutput, ReplicaSelector

logger = structlog.get_logger(__name__)


class ReplicaInspector:
    """セレクタに一致する全レプリカでコマンドを実行し、出力を集める。

    1 レプリカの失敗で残りの検査は止めない。一致判定は呼び出し側が行う。
    """

    def __init__(
        self,
        cluster_api: ClusterApi,
        *,
        max_workers: int = 1,
        exec_timeout: float | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._api = cluster_api
        self._max_workers = max_workers
        self._exec_timeout = exec_timeout

    def inspect(self, selector: ReplicaSelector, command: list[str]) -> list[ReplicaOutput]:
        """レプリカ一覧を 1 回取得し、各レプリカで command を実行する。

        Raises:
            ListError: レプリカ一覧の取得に失敗した場合
        """
        try:
            replicas = self._api.list_pods(selector.namespace, selector.label_selector)
        except ConvergenceError as e:
            raise ListError(selector.namespace, selector.label_selector, cause=e) from e
        logger.info(
            "replicas_listed",
            namespace=selector.namespace,
            selector=selector.label_selector,
            replicas=replicas,
        )

        if self._max_workers == 1 or len(replicas) <= 1:
            return [self._inspect_one(selector, replica, command) for replica in replicas]
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            return list(pool.map(lambda r: self._inspect_one(selector, r, command), replicas))

    def _inspect_one(
        self, selector: ReplicaSelector, replica: str, command: list[str]
    ) -> ReplicaOutput:
        try:
            result = self._api.exec_in_pod(
                selector.namespace,
                replica,
                selector.container,
                command,
                timeout=self._exec_timeout,
            )
        except ConvergenceError as e:
            logger.warning("replica_exec_failed", replica=replica, error=str(e))
            return ReplicaOutput(
                replica=replica,
                output="",
                error=ExecFailure(replica, str(e), cause=e),
            )

        if result.returncode not in (None, 0):
            message = f"exit status {result.returncode}"
            if result.stderr:
                message += f": {result.stderr.strip()}"
            logger.warning("replica_exec_nonzero", replica=replica, returncode=result.returncode)
            return ReplicaOutput(
                replica=replica,
                output=result.stdout,
                error=ExecFailure(replica, message, output=result.stdout),
            )
        logger.debug("replica_exec_succeeded", replica=replica, bytes=len(result.stdout))
        return ReplicaOutput(replica=replica, output=result.stdout)
