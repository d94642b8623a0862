"""ユニットテスト共通のフェイク実装とフィクスチャ。"""

from __future__ import annotations

import copy
import json
from typing import Any

import pytest
from kdm_convergence.cluster_api import ClusterApi
from kdm_convergence.exceptions import NotFoundError
from kdm_convergence.models import BackoffPolicy, DeploymentStatus, ExecResult
from kdm_convergence.settings_api import SettingsApi
from kdm_convergence.versions import VersionReader


class FakeSettingsApi(SettingsApi):
    """インメモリの設定ストア。"""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents = documents or {}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def get(self, name: str) -> dict[str, Any]:
        if name not in self.documents:
            raise NotFoundError(resource="setting", name=name)
        return copy.deepcopy(self.documents[name])

    def update(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        if name not in self.documents:
            raise NotFoundError(resource="setting", name=name)
        self.updates.append((name, copy.deepcopy(document)))
        self.documents[name] = copy.deepcopy(document)
        return copy.deepcopy(document)

    def value_of(self, name: str) -> dict[str, str]:
        return json.loads(self.documents[name]["value"])


class FakeClusterApi(ClusterApi):
    """インメモリの Deployment / Pod / exec。

    scale 後、ready_after 回の取得で ready_replicas が目標値に達する。
    """

    def __init__(
        self,
        desired: int = 1,
        pods: list[str] | None = None,
        ready_after: int = 1,
    ) -> None:
        self.desired = desired
        self.ready = desired
        self.ready_after = ready_after
        self.pods = pods if pods is not None else []
        self.exec_results: dict[str, ExecResult | Exception] = {}
        self.get_errors: list[Exception] = []
        self.list_error: Exception | None = None
        self.scale_calls: list[int] = []
        self.exec_calls: list[tuple[str, list[str]]] = []
        self._gets_since_scale = 0

    def get_deployment(self, namespace: str, name: str) -> DeploymentStatus:
        if self.get_errors:
            raise self.get_errors.pop(0)
        self._gets_since_scale += 1
        if self._gets_since_scale > self.ready_after:
            self.ready = self.desired
        return DeploymentStatus(desired_replicas=self.desired, ready_replicas=self.ready)

    def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        self.scale_calls.append(replicas)
        self.desired = replicas
        self._gets_since_scale = 0

    def list_pods(self, namespace: str, label_selector: str) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.pods)

    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        container: str,
        command: list[str],
        timeout: float | None = None,
    ) -> ExecResult:
        self.exec_calls.append((pod, command))
        result = self.exec_results.get(pod, ExecResult(stdout=""))
        if isinstance(result, Exception):
            raise result
        return result


class FakeVersionReader(VersionReader):
    """呼び出しごとに values を順に返す。使い切った後は最後の値を返し続ける。"""

    def __init__(self, values: list[str | Exception]) -> None:
        self.values = list(values)
        self.calls = 0

    def default_version(self, cluster_type: str, filters: list[str] | None = None) -> list[str]:
        index = min(self.calls, len(self.values) - 1)
        self.calls += 1
        value = self.values[index]
        if isinstance(value, Exception):
            raise value
        return [value, "v1.29.9+rke2r1"]


class SleepRecorder:
    """time.sleep の代わりに待機時間を記録する。"""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fast_policy() -> BackoffPolicy:
    return BackoffPolicy(initial_delay=0.01, factor=2.0, max_attempts=5)


@pytest.fixture
def metadata_setting() -> dict[str, Any]:
    return {
        "id": "rke-metadata-config",
        "type": "management.cattle.io.setting",
        "metadata": {"name": "rke-metadata-config", "resourceVersion": "1001"},
        "value": json.dumps(
            {
                "refresh-interval-minutes": "1440",
                "url": "https://releases.rancher.com/kontainer-driver-metadata/dev-v2.8/data.json",
            }
        ),
        "default": "",
    }
