"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_MODIFIER_KEYS = ["Key.alt_l", "Key.alt_r", "Key.alt", "Key.alt_gr"]

DEFAULTS: dict[str, Any] = {
    "api_key": "",
    "modifier_keys": DEFAULT_MODIFIER_KEYS,
    "short_press_ms": 300,
    "paste_settle_ms": 100,
    "clipboard_restore_ms": 1000,
    "transcription_model": "qwen3-asr-flash",
    "fast_model": "qwen-turbo",
    "quality_model": "qwen-max",
    "archive_format": "mp3",
    "archive_bitrate": "192k",
    "log_level": "INFO",
    "data_dir": "",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "vtalk" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key") or os.getenv("DASHSCOPE_API_KEY", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_modifier_keys(self) -> list[str]:
        value = self._read_all().get("modifier_keys")
        if not isinstance(value, list) or not value:
            return list(DEFAULT_MODIFIER_KEYS)
        return [str(k) for k in value]

    def set_modifier_keys(self, keys: list[str]) -> None:
        self._set("modifier_keys", list(keys))

    def get_short_press_s(self) -> float:
        return self._get_int("short_press_ms") / 1000.0

    def get_paste_settle_s(self) -> float:
        return self._get_int("paste_settle_ms") / 1000.0

    def get_clipboard_restore_s(self) -> float:
        return self._get_int("clipboard_restore_ms") / 1000.0

    def get_str(self, key: str) -> str:
        value = self._read_all().get(key)
        if value is None or value == "":
            return str(DEFAULTS.get(key, ""))
        return str(value)

    def get_data_dir(self) -> Path:
        value = self.get_str("data_dir")
        data_dir = Path(value).expanduser() if value else self._path.parent
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def _get_int(self, key: str) -> int:
        try:
            return int(self._read_all().get(key, DEFAULTS[key]))
        except (TypeError, ValueError):
            return int(DEFAULTS[key])

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
