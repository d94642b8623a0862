"""設定辞書のマージユーティリティ"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def set_dotted(data: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """ドット区切りのパスに値を設定した新しい辞書を返す。

    例: set_dotted({}, "rancher.token", "x") -> {"rancher": {"token": "x"}}
    """
    node: Any = value
    for part in reversed(key_path.split(".")):
        node = {part: node}
    return deep_merge(data, node)


def overrides_from_env(environ: Mapping[str, str], prefix: str = "KDM_") -> dict[str, str]:
    """環境変数から設定の上書きを取り出す。

    ``KDM_RANCHER__TOKEN`` は ``rancher.token`` になる。
    """
    overrides: dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(prefix) or name == f"{prefix}CONFIG":
            continue
        parts = [p.lower() for p in name[len(prefix):].split("__") if p]
        if parts:
            overrides[".".join(parts)] = value
    return overrides
