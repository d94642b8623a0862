"""E2E テスト共通設定。

実クラスタに対して実行する。KDM_RANCHER__URL（または KDM_CONFIG）が
未設定、あるいは Rancher に接続できない場合はスキップする。
"""

import os
from collections.abc import Generator

import httpx
import pytest
from kdm_convergence.config import HarnessConfig
from kdm_convergence.exceptions import ConfigError
from kdm_convergence.loader import load_from_env
from kdm_convergence.session import ClusterSession
from kdm_convergence.telemetry import init_telemetry


@pytest.fixture(scope="session")
def harness_config() -> HarnessConfig:
    if not (os.environ.get("KDM_RANCHER__URL") or os.environ.get("KDM_CONFIG")):
        pytest.skip("KDM_RANCHER__URL が設定されていません")
    try:
        config = load_from_env()
    except ConfigError as e:
        pytest.skip(f"ハーネス設定を読み込めません: {e}")
    init_telemetry(config.observability)
    return config


@pytest.fixture(scope="session")
def cluster_session(harness_config: HarnessConfig) -> Generator[ClusterSession, None, None]:
    """テストセッション全体で共有するクラスタセッション。"""
    try:
        httpx.get(
            f"{harness_config.rancher.url.rstrip('/')}/ping",
            verify=harness_config.rancher.verify_tls,
            timeout=harness_config.rancher.timeout_seconds,
        )
    except httpx.TransportError:
        pytest.skip("Rancher が起動していません（接続エラー）")
    with ClusterSession(harness_config) as session:
        yield session
