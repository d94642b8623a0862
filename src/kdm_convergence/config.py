"""ハーネス設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .models import BackoffPolicy, ReplicaSelector, ScaleTarget, VerificationPlan

DEV_METADATA_URL = "https://releases.rancher.com/kontainer-driver-metadata/dev-v2.8/data.json"
RELEASE_METADATA_URL = "https://releases.rancher.com/kontainer-driver-metadata/release-v2.8/data.json"


class RancherSection(BaseModel):
    """Rancher API 接続設定。"""

    url: str
    token: str = ""
    verify_tls: bool = False
    cluster_id: str = "local"
    timeout_seconds: float = Field(default=30.0, gt=0)


class KubernetesSection(BaseModel):
    """kubeconfig 設定。未指定なら Rancher から生成する。"""

    kubeconfig: str | None = None
    context: str | None = None


class TargetSection(BaseModel):
    """検証対象のサービス。"""

    namespace: str = "cattle-system"
    deployment: str = "rancher"
    label_selector: str = "app=rancher"
    container: str = "rancher"
    replicas: int = Field(default=3, ge=1)


class MetadataSection(BaseModel):
    """変更するメタデータ設定。"""

    setting: str = "rke-metadata-config"
    key: str = "url"
    source_url: str | None = DEV_METADATA_URL
    target_url: str = RELEASE_METADATA_URL
    cluster_type: Literal["rke2", "k3s"] = "rke2"
    version_filters: list[str] = Field(default_factory=list)
    restore_original: bool = True


class BackoffSection(BaseModel):
    """ポーリングのバックオフ設定。"""

    initial_delay: float = Field(default=1.0, ge=0)
    factor: float = Field(default=2.0, gt=1)
    max_attempts: int = Field(default=7, ge=1)
    max_delay: float | None = Field(default=None, ge=0)

    def to_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            initial_delay=self.initial_delay,
            factor=self.factor,
            max_attempts=self.max_attempts,
            max_delay=self.max_delay,
        )


class InspectSection(BaseModel):
    """レプリカ検査設定。"""

    command: list[str] | None = None
    max_workers: int = Field(default=1, ge=1)
    exec_timeout_seconds: float = Field(default=60.0, gt=0)


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"


class TraceSection(BaseModel):
    """分散トレーシング設定。"""

    enabled: bool = False
    endpoint: str = ""
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class ObservabilitySection(BaseModel):
    """可観測性設定。"""

    log: LogSection = Field(default_factory=LogSection)
    trace: TraceSection = Field(default_factory=TraceSection)


class HarnessConfig(BaseModel):
    """ハーネス設定全体。"""

    rancher: RancherSection
    kubernetes: KubernetesSection = Field(default_factory=KubernetesSection)
    target: TargetSection = Field(default_factory=TargetSection)
    metadata: MetadataSection = Field(default_factory=MetadataSection)
    backoff: BackoffSection = Field(default_factory=BackoffSection)
    inspect: InspectSection = Field(default_factory=InspectSection)
    observability: ObservabilitySection = Field(default_factory=ObservabilitySection)

    def inspect_command(self) -> list[str]:
        """レプリカ内で実行するコマンド。未指定ならリリース一覧を取得する curl。"""
        if self.inspect.command:
            return list(self.inspect.command)
        return [
            "curl",
            "--insecure",
            "--silent",
            f"https://0.0.0.0/v1-{self.metadata.cluster_type}-release/releases",
        ]

    def to_plan(self) -> VerificationPlan:
        return VerificationPlan(
            setting=self.metadata.setting,
            key=self.metadata.key,
            source_value=self.metadata.source_url,
            target_value=self.metadata.target_url,
            scale_target=ScaleTarget(
                namespace=self.target.namespace,
                name=self.target.deployment,
                replicas=self.target.replicas,
            ),
            selector=ReplicaSelector(
                namespace=self.target.namespace,
                label_selector=self.target.label_selector,
                container=self.target.container,
            ),
            command=self.inspect_command(),
            cluster_type=self.metadata.cluster_type,
            version_filters=list(self.metadata.version_filters),
        )
