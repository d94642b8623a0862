"""設定ローダーのユニットテスト"""

from pathlib import Path

import pytest
from kdm_convergence.config import DEV_METADATA_URL, HarnessConfig, RELEASE_METADATA_URL
from kdm_convergence.exceptions import ConfigError, ConfigErrorCodes
from kdm_convergence.loader import apply_overrides, load, load_from_env

MINIMAL = "rancher:\n  url: https://rancher.example.com\n  token: token-abc\n"


def test_load_minimal_config(tmp_path: Path) -> None:
    """最小設定ファイルの読み込みと既定値。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(MINIMAL)
    config = load(config_file)
    assert config.rancher.url == "https://rancher.example.com"
    assert config.rancher.verify_tls is False
    assert config.target.namespace == "cattle-system"
    assert config.target.replicas == 3
    assert config.metadata.source_url == DEV_METADATA_URL
    assert config.metadata.target_url == RELEASE_METADATA_URL
    assert config.backoff.to_policy().max_attempts == 7


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別設定のマージ確認。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text(MINIMAL + "target:\n  replicas: 3\n")
    env_file = tmp_path / "ci.yaml"
    env_file.write_text("target:\n  replicas: 5\nmetadata:\n  cluster_type: k3s\n")
    config = load(base_file, env_file)
    assert config.rancher.token == "token-abc"
    assert config.target.replicas == 5
    assert config.metadata.cluster_type == "k3s"


def test_load_env_not_exists(tmp_path: Path) -> None:
    """env_path が存在しない場合は base のみ使用。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text(MINIMAL)
    config = load(base_file, tmp_path / "nonexistent.yaml")
    assert config.rancher.token == "token-abc"


def test_load_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load(tmp_path / "missing.yaml")
    assert exc_info.value.code == ConfigErrorCodes.READ_FILE


def test_load_invalid_yaml(tmp_path: Path) -> None:
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("rancher: {invalid: yaml: content:\n")
    with pytest.raises(ConfigError) as exc_info:
        load(bad_file)
    assert exc_info.value.code == ConfigErrorCodes.PARSE_YAML


def test_load_validation_error(tmp_path: Path) -> None:
    """rancher.url 欠落やレプリカ数 0 は VALIDATION_ERROR。"""
    bad_config = tmp_path / "bad_config.yaml"
    bad_config.write_text("target:\n  replicas: 0\n")
    with pytest.raises(ConfigError) as exc_info:
        load(bad_config)
    assert exc_info.value.code == ConfigErrorCodes.VALIDATION
    assert str(exc_info.value).startswith("VALIDATION_ERROR: ")


def test_backoff_factor_must_grow(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(MINIMAL + "backoff:\n  factor: 1.0\n")
    with pytest.raises(ConfigError):
        load(config_file)


def test_load_from_env_without_file() -> None:
    environ = {
        "KDM_RANCHER__URL": "https://rancher.example.com",
        "KDM_RANCHER__TOKEN": "token-abc",
        "KDM_TARGET__REPLICAS": "4",
        "KDM_INSPECT__COMMAND": '["curl", "-k", "https://0.0.0.0/v1-rke2-release/releases"]',
    }
    config = load_from_env(environ)
    assert config.rancher.token == "token-abc"
    assert config.target.replicas == 4
    assert config.inspect_command() == ["curl", "-k", "https://0.0.0.0/v1-rke2-release/releases"]


def test_load_from_env_reads_config_path(tmp_path: Path) -> None:
    """KDM_CONFIG のファイルを読み、環境変数が優先されること。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(MINIMAL)
    config = load_from_env({"KDM_CONFIG": str(config_file), "KDM_RANCHER__TOKEN": "from-env"})
    assert config.rancher.url == "https://rancher.example.com"
    assert config.rancher.token == "from-env"


def test_apply_overrides() -> None:
    config = HarnessConfig.model_validate({"rancher": {"url": "https://r"}})
    updated = apply_overrides(config, {"metadata.restore_original": "false", "backoff.max_attempts": "3"})
    assert updated.metadata.restore_original is False
    assert updated.backoff.max_attempts == 3
    assert config.backoff.max_attempts == 7


def test_to_plan() -> None:
    config = HarnessConfig.model_validate(
        {"rancher": {"url": "https://r"}, "metadata": {"cluster_type": "k3s", "source_url": None}}
    )
    plan = config.to_plan()
    assert plan.setting == "rke-metadata-config"
    assert plan.key == "url"
    assert plan.source_value is None
    assert plan.target_value == RELEASE_METADATA_URL
    assert plan.scale_target.replicas == 3
    assert plan.selector.label_selector == "app=rancher"
    assert plan.command[-1] == "https://0.0.0.0/v1-k3s-release/releases"
    assert plan.cluster_type == "k3s"
