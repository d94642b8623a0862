"""外部設定の read-modify-write"""

from __future__ import annotations

import copy
import json
from typing import Any

import structlog

from .exceptions import DecodeError, EncodeError
from .models import Setting
from .settings_api import SettingsApi

logger = structlog.get_logger(__name__)


def decode_value(name: str, document: dict[str, Any]) -> dict[str, str]:
    """設定ドキュメントの value を文字列→文字列のマッピングとしてデコードする。

    value が空の場合は default を実効値として扱う。
    """
    if "value" not in document:
        raise DecodeError(f"setting {name} has no value field")
    raw = document.get("value") or document.get("default") or ""
    if not raw:
        return {}
    if not isinstance(raw, str):
        raise DecodeError(f"setting {name} value is not a string: {type(raw).__name__}")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"setting {name} value is not valid JSON", cause=e) from e
    if not isinstance(data, dict):
        raise DecodeError(f"setting {name} value is not a JSON object")
    for key, value in data.items():
        if not isinstance(value, str):
            raise DecodeError(f"setting {name} key {key!r} is not a string")
    return data


class ConfigMutator:
    """名前付き設定の 1 キーを書き換える。"""

    def __init__(self, settings_api: SettingsApi) -> None:
        self._api = settings_api

    def read(self, name: str) -> Setting:
        """現在の設定を取得してデコードする。"""
        document = self._api.get(name)
        return Setting(name=name, value=decode_value(name, document), document=document)

    def update(self, name: str, key: str, new_value: str) -> Setting:
        """設定を読み、key だけを new_value に置き換えて書き戻す。"""
        if not isinstance(new_value, str):
            raise EncodeError(
                f"setting {name} key {key!r} must be a string, got {type(new_value).__name__}"
            )
        current = self.read(name)
        data = dict(current.value)
        previous = data.get(key)
        data[key] = new_value
        try:
            encoded = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise EncodeError(f"failed to encode setting {name}", cause=e) from e

        document = copy.deepcopy(current.document)
        document["value"] = encoded
        updated = self._api.update(name, document)
        logger.info("setting_updated", setting=name, key=key, previous=previous, value=new_value)
        return Setting(name=name, value=data, document=updated)
