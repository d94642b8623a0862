"""設定ファイル読み込み"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import HarnessConfig
from .exceptions import ConfigError, ConfigErrorCodes
from .merger import deep_merge, overrides_from_env, set_dotted

CONFIG_ENV = "KDM_CONFIG"


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            code=ConfigErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            code=ConfigErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    return data


def _validate(data: dict[str, Any]) -> HarnessConfig:
    try:
        return HarnessConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            code=ConfigErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e


def _parse_override(value: str) -> Any:
    # JSON 配列のみ構造として解釈する。スカラーは pydantic が型変換する
    if value.startswith("["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def apply_overrides(config: HarnessConfig, overrides: Mapping[str, str]) -> HarnessConfig:
    """ドット区切りパスの上書きを適用して新しい HarnessConfig を返す。

    例: {"rancher.token": "token-abc", "target.replicas": "5"}
    """
    data = config.model_dump()
    for key_path, value in overrides.items():
        data = set_dotted(data, key_path, _parse_override(value))
    return _validate(data)


def load(base_path: Path, env_path: Path | None = None) -> HarnessConfig:
    """設定ファイルを読み込んで HarnessConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        env_data = _read_yaml(env_path)
        data = deep_merge(data, env_data)
    return _validate(data)


def load_from_env(
    environ: Mapping[str, str] | None = None,
    base_path: Path | None = None,
) -> HarnessConfig:
    """環境変数 (KDM_*) と任意の設定ファイルから HarnessConfig を構築する。

    base_path が未指定なら KDM_CONFIG が指すファイルを使う。
    """
    env = os.environ if environ is None else environ
    if base_path is None and env.get(CONFIG_ENV):
        base_path = Path(env[CONFIG_ENV])
    data = _read_yaml(base_path) if base_path is not None else {}
    for key_path, value in overrides_from_env(env).items():
        data = set_dotted(data, key_path, _parse_override(value))
    return _validate(data)
