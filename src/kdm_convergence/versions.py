"""Rancher が提供する Kubernetes バージョンの読み取り"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from .exceptions import ApiError, ConvergenceError, NotFoundError

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:[-+].*?(\d+)$)?")


def version_key(version: str) -> tuple[int, ...]:
    """バージョン文字列を比較キーに変換する。

    例: ``v1.30.1+rke2r1`` -> ``(1, 30, 1, 1)``
    """
    m = _VERSION_RE.match(version)
    if m is None:
        return (-1,)
    return tuple(int(g) if g is not None else 0 for g in m.groups())


def sort_versions(versions: list[str]) -> list[str]:
    """新しい順に並べ替える。"""
    return sorted(versions, key=version_key, reverse=True)


class VersionReader(ABC):
    """クラスタ種別ごとのデフォルト Kubernetes バージョンを返す。"""

    @abstractmethod
    def default_version(self, cluster_type: str, filters: list[str] | None = None) -> list[str]:
        """バージョン一覧を返す。先頭要素が観測対象の値。"""
        ...


class RancherVersionReader(VersionReader):
    """Rancher のリリース一覧と <type>-default-version 設定から解決する。"""

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def _get_json(self, path: str, resource: str, name: str) -> dict[str, Any]:
        try:
            resp = self._http.get(path)
        except Exception as e:
            raise ApiError(f"Failed to get {resource} {name}: {e}", cause=e) from e
        if resp.status_code == 404:
            raise NotFoundError(resource=resource, name=name)
        if resp.status_code >= 400:
            raise ApiError(
                f"get {resource}({name}): HTTP {resp.status_code}: {resp.text}",
                status=resp.status_code,
            )
        try:
            data: dict[str, Any] = resp.json()
        except ValueError as e:
            raise ApiError(f"{resource} {name} returned invalid JSON", cause=e) from e
        return data

    def list_versions(self, cluster_type: str) -> list[str]:
        """メタデータから配布されている全バージョンを新しい順に返す。"""
        data = self._get_json(
            f"/v1-{cluster_type}-release/releases", "releases", cluster_type
        )
        return sort_versions([item["id"] for item in data.get("data", []) if item.get("id")])

    def default_version(self, cluster_type: str, filters: list[str] | None = None) -> list[str]:
        try:
            versions = self.list_versions(cluster_type)
            if not versions:
                raise ApiError(f"no {cluster_type} releases published yet")
            if filters:
                matched = [v for v in versions if any(f in v for f in filters)]
                if not matched:
                    raise NotFoundError(resource=f"{cluster_type} version", name=",".join(filters))
                return matched

            setting_name = f"{cluster_type}-default-version"
            setting = self._get_json(
                f"/v1/management.cattle.io.settings/{setting_name}", "setting", setting_name
            )
            default = setting.get("value") or setting.get("default") or ""
        except ConvergenceError:
            raise
        except Exception as e:
            raise ApiError(f"Failed to resolve {cluster_type} default version: {e}", cause=e) from e

        if default:
            prefix = default if default.startswith("v") else f"v{default}"
            for version in versions:
                if version.startswith(prefix):
                    return [version]
        return [versions[0]]
