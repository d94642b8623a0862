"""設定からセッションと各コンポーネントを組み立てて検証を実行する"""

from __future__ import annotations

import structlog

from .config import HarnessConfig
from .inspector import ReplicaInspector
from .models import VerificationReport
from .mutator import ConfigMutator
from .scaler import ReplicaScaler
from .session import ClusterSession
from .verifier import ConvergenceVerifier

logger = structlog.get_logger(__name__)


def build_verifier(session: ClusterSession, config: HarnessConfig) -> ConvergenceVerifier:
    """セッションのクライアントを使って ConvergenceVerifier を構築する。"""
    cluster_api = session.cluster_api
    return ConvergenceVerifier(
        mutator=ConfigMutator(session.settings_api),
        scaler=ReplicaScaler(cluster_api),
        inspector=ReplicaInspector(
            cluster_api,
            max_workers=config.inspect.max_workers,
            exec_timeout=config.inspect.exec_timeout_seconds,
        ),
        version_reader=session.version_reader,
        policy=config.backoff.to_policy(),
    )


def register_restore(session: ClusterSession, config: HarnessConfig) -> None:
    """現在の設定値を記録し、セッション終了時に書き戻すクリーンアップを登録する。"""
    mutator = ConfigMutator(session.settings_api)
    setting, key = config.metadata.setting, config.metadata.key
    original = mutator.read(setting).value.get(key)
    if original is None:
        logger.warning("restore_skipped", setting=setting, key=key, reason="key not set")
        return

    def restore() -> None:
        mutator.update(setting, key, original)
        logger.info("setting_restored", setting=setting, key=key, value=original)

    session.register_cleanup(f"restore {setting}.{key}", restore)


def run_in_session(session: ClusterSession, config: HarnessConfig) -> VerificationReport:
    """開いているセッションで検証を 1 回実行する。"""
    if config.metadata.restore_original:
        register_restore(session, config)
    return build_verifier(session, config).run(config.to_plan())


def run_verification(config: HarnessConfig) -> VerificationReport:
    """セッションを開いて検証を実行し、必ず閉じる。"""
    with ClusterSession(config) as session:
        return run_in_session(session, config)
