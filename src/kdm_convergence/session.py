"""クラスタセッション (Rancher API クライアントと Kubernetes クライアントの取得と解放)"""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any

import httpx
import structlog
import yaml
from kubernetes import client, config as kube_config

from .cluster_api import ClusterApi, KubeClusterApi
from .config import HarnessConfig
from .exceptions import ConvergenceError, ConvergenceErrorCodes
from .settings_api import SettingsApi, SteveSettingsApi
from .versions import RancherVersionReader, VersionReader

logger = structlog.get_logger(__name__)


class ClusterSession:
    """認証済みクライアントを保持するスコープ付きリソース。

    with 文で使う。終了時は登録されたクリーンアップを逆順に実行し、
    その後クライアントを閉じる。
    """

    def __init__(self, config: HarnessConfig) -> None:
        self._config = config
        self._http: httpx.Client | None = None
        self._api_client: client.ApiClient | None = None
        self._cleanups: list[tuple[str, Callable[[], Any]]] = []

    def __enter__(self) -> ClusterSession:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.close()
        except Exception as e:
            if exc is None:
                raise
            # 本体の例外を優先し、クリーンアップの失敗はログに残す
            logger.error("session_cleanup_error_suppressed", error=str(e), original=str(exc))

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            raise RuntimeError("session is not open")
        return self._http

    @property
    def api_client(self) -> client.ApiClient:
        if self._api_client is None:
            raise RuntimeError("session is not open")
        return self._api_client

    @property
    def settings_api(self) -> SettingsApi:
        return SteveSettingsApi(self.http)

    @property
    def cluster_api(self) -> ClusterApi:
        return KubeClusterApi(self.api_client)

    @property
    def version_reader(self) -> VersionReader:
        return RancherVersionReader(self.http)

    def open(self) -> None:
        """Rancher API クライアントと Kubernetes クライアントを生成する。"""
        rancher = self._config.rancher
        headers = {"Accept": "application/json"}
        if rancher.token:
            headers["Authorization"] = f"Bearer {rancher.token}"
        self._http = httpx.Client(
            base_url=rancher.url.rstrip("/"),
            headers=headers,
            verify=rancher.verify_tls,
            timeout=rancher.timeout_seconds,
        )
        try:
            self._api_client = self._load_api_client()
        except BaseException:
            self._http.close()
            self._http = None
            raise
        logger.info("session_opened", rancher=rancher.url, cluster=rancher.cluster_id)

    def _load_api_client(self) -> client.ApiClient:
        kube = self._config.kubernetes
        if kube.kubeconfig:
            return kube_config.new_client_from_config(
                config_file=kube.kubeconfig, context=kube.context
            )
        kubeconfig = self.generate_kubeconfig(self._config.rancher.cluster_id)
        return kube_config.new_client_from_config_dict(kubeconfig, context=kube.context)

    def generate_kubeconfig(self, cluster_id: str) -> dict[str, Any]:
        """Rancher の generateKubeconfig アクションで kubeconfig を取得する。"""
        try:
            resp = self.http.post(
                f"/v3/clusters/{cluster_id}", params={"action": "generateKubeconfig"}
            )
            resp.raise_for_status()
            data: dict[str, Any] = yaml.safe_load(resp.json()["config"])
        except Exception as e:
            raise ConvergenceError(
                code=ConvergenceErrorCodes.SESSION_ERROR,
                message=f"Failed to generate kubeconfig for cluster {cluster_id}: {e}",
                cause=e,
            ) from e
        return data

    def register_cleanup(self, name: str, fn: Callable[[], Any]) -> None:
        """セッション終了時に実行する関数を登録する。"""
        self._cleanups.append((name, fn))

    def close(self) -> None:
        """クリーンアップを逆順に実行し、クライアントを閉じる。

        クリーンアップが失敗しても残りは実行し、最初の例外を最後に送出する。
        """
        first_error: Exception | None = None
        while self._cleanups:
            name, fn = self._cleanups.pop()
            try:
                fn()
            except Exception as e:
                logger.error("session_cleanup_failed", cleanup=name, error=str(e))
                if first_error is None:
                    first_error = e
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None
        if self._http is not None:
            self._http.close()
            self._http = None
        logger.info("session_closed")
        if first_error is not None:
            raise first_error
