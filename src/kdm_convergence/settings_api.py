"""Rancher 設定 API クライアント"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from .exceptions import ApiError, ConvergenceError, NotFoundError, WriteConflictError

SETTING_TYPE = "management.cattle.io.setting"


class SettingsApi(ABC):
    """名前付き設定の読み書きを行う抽象基底クラス。"""

    @abstractmethod
    def get(self, name: str) -> dict[str, Any]:
        """設定ドキュメントを取得する。"""
        ...

    @abstractmethod
    def update(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        """設定ドキュメント全体を書き戻す。"""
        ...


class SteveSettingsApi(SettingsApi):
    """Steve API (/v1) 経由の設定クライアント。

    Norman API (/v3) では設定値を空文字列にできないため Steve を使う。
    """

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def _path(self, name: str) -> str:
        return f"/v1/{SETTING_TYPE}s/{name}"

    def _handle_error(self, resp: httpx.Response, name: str, context: str) -> None:
        if resp.status_code == 404:
            raise NotFoundError(resource="setting", name=name)
        if resp.status_code == 409:
            raise WriteConflictError(f"{context}({name}): conflict: {resp.text}")
        if resp.status_code >= 400:
            raise ApiError(
                f"{context}({name}): HTTP {resp.status_code}: {resp.text}",
                status=resp.status_code,
            )

    def get(self, name: str) -> dict[str, Any]:
        try:
            resp = self._http.get(self._path(name))
            self._handle_error(resp, name, "get_setting")
            data: dict[str, Any] = resp.json()
            return data
        except ConvergenceError:
            raise
        except Exception as e:
            raise ApiError(f"Failed to get setting {name}: {e}", cause=e) from e

    def update(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = self._http.put(self._path(name), json=document)
            self._handle_error(resp, name, "update_setting")
            data: dict[str, Any] = resp.json()
            return data
        except ConvergenceError:
            raise
        except Exception as e:
            raise ApiError(f"Failed to update setting {name}: {e}", cause=e) from e
