"""Kubernetes API アダプター (Deployment / Pod 一覧 / exec)"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from .exceptions import ApiError, ConvergenceError, NotFoundError, WriteConflictError
from .models import DeploymentStatus, ExecResult


class ClusterApi(ABC):
    """ハーネスが使うクラスタ操作の抽象基底クラス。"""

    @abstractmethod
    def get_deployment(self, namespace: str, name: str) -> DeploymentStatus:
        """Deployment の目標/準備完了レプリカ数を取得する。"""
        ...

    @abstractmethod
    def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        """Deployment の目標レプリカ数を更新する。"""
        ...

    @abstractmethod
    def list_pods(self, namespace: str, label_selector: str) -> list[str]:
        """ラベルセレクタに一致する Pod 名を一覧順で返す。"""
        ...

    @abstractmethod
    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        container: str,
        command: list[str],
        timeout: float | None = None,
    ) -> ExecResult:
        """Pod 内でコマンドを実行し出力を返す。"""
        ...


def _translate(e: ApiException, resource: str, name: str, context: str) -> ConvergenceError:
    if e.status == 404:
        return NotFoundError(resource=resource, name=name, cause=e)
    if e.status == 409:
        return WriteConflictError(f"{context}({name}): {e.reason}", cause=e)
    return ApiError(f"{context}({name}): HTTP {e.status}: {e.reason}", cause=e, status=e.status)


class KubeClusterApi(ClusterApi):
    """kubernetes クライアントを使った ClusterApi 実装。"""

    def __init__(self, api_client: client.ApiClient) -> None:
        self._apps = client.AppsV1Api(api_client)
        self._core = client.CoreV1Api(api_client)

    def get_deployment(self, namespace: str, name: str) -> DeploymentStatus:
        ref = f"{namespace}/{name}"
        try:
            deployment = self._apps.read_namespaced_deployment(name, namespace)
        except ApiException as e:
            raise _translate(e, "deployment", ref, "get_deployment") from e
        except Exception as e:
            raise ApiError(f"Failed to get deployment {ref}: {e}", cause=e) from e
        spec_replicas = deployment.spec.replicas if deployment.spec else None
        ready = deployment.status.ready_replicas if deployment.status else None
        return DeploymentStatus(
            # spec.replicas を省略した Deployment は 1 レプリカ
            desired_replicas=1 if spec_replicas is None else spec_replicas,
            ready_replicas=ready or 0,
        )

    def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        ref = f"{namespace}/{name}"
        try:
            self._apps.patch_namespaced_deployment_scale(
                name, namespace, {"spec": {"replicas": replicas}}
            )
        except ApiException as e:
            raise _translate(e, "deployment", ref, "scale_deployment") from e
        except Exception as e:
            raise ApiError(f"Failed to scale deployment {ref}: {e}", cause=e) from e

    def list_pods(self, namespace: str, label_selector: str) -> list[str]:
        try:
            pods = self._core.list_namespaced_pod(namespace, label_selector=label_selector)
        except ApiException as e:
            raise _translate(e, "namespace", namespace, "list_pods") from e
        except Exception as e:
            raise ApiError(f"Failed to list pods in {namespace}: {e}", cause=e) from e
        return [pod.metadata.name for pod in pods.items]

    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        container: str,
        command: list[str],
        timeout: float | None = None,
    ) -> ExecResult:
        ref = f"{namespace}/{pod}"
        try:
            resp = stream(
                self._core.connect_get_namespaced_pod_exec,
                pod,
                namespace,
                container=container,
                command=command,
                stderr=True,
                stdin=False,
                stdout=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            raise _translate(e, "pod", ref, "exec") from e
        except Exception as e:
            raise ApiError(f"Failed to open exec stream to {ref}: {e}", cause=e) from e
        try:
            resp.run_forever(timeout=timeout)
            if resp.is_open():
                # run_forever はタイムアウトでも例外を送出せずに戻る
                raise ApiError(f"exec in {ref} timed out after {timeout}s")
            stdout = resp.read_stdout(timeout=0) or ""
            stderr = resp.read_stderr(timeout=0) or ""
            returncode = resp.returncode
        except ConvergenceError:
            raise
        except Exception as e:
            raise ApiError(f"Exec stream to {ref} failed: {e}", cause=e) from e
        finally:
            resp.close()
        return ExecResult(stdout=stdout, stderr=stderr, returncode=returncode)
