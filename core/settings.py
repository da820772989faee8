from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict

from triage.filters import MAX_FILE_SIZE

from .paths import get_default_settings_paths, get_logs_dir
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
]

SETTINGS_VERSION = 1


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "triage": {
        "debounce_s": 2.0,
        "max_file_size": MAX_FILE_SIZE,
        "max_concurrency": 4,
        "max_workers": 16,
        "request_timeout_s": 30.0,
        "classifier": {
            "base_url": "https://api.anthropic.com",
            "model": "claude-opus-4-5-20251101",
            "max_tokens": 1024,
            "subcategory_max_tokens": 256,
            "api_version": "2023-06-01",
        },
        "watch": {
            "enable": False,
        },
        "merge": {
            "min_files_per_folder": 3,
            "min_files_per_subfolder": 3,
        },
    },
    "api": {
        "host": "127.0.0.1",
        "port": 8757,
        "cors_origins": ["http://localhost", "http://127.0.0.1"],
        "lan_only": True,
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            current = payload.get(key)
            if isinstance(value, dict):
                result[key] = _merge(value, current if isinstance(current, dict) else {})
            elif isinstance(value, list):
                result[key] = list(current) if isinstance(current, list) else list(value)
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            result.setdefault(key, value)
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    try:
        version = int(settings.get("version"))
    except (TypeError, ValueError):
        version = 0
    if version < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def _log_unknown_keys(settings: Dict[str, Any], working_dir: Path) -> None:
    unknown = SETTINGS_VALIDATOR.unknown_keys(settings)
    if not unknown:
        return
    logs_dir = get_logs_dir(working_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    payload = {"ts": time.time(), "unknown": unknown}
    try:
        with open(logs_dir / "settings_unknown.json", "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError:
        return


def load_settings(working_dir: Path) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for candidate in get_default_settings_paths(working_dir):
        try:
            with open(candidate, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except FileNotFoundError:
            continue
        except (json.JSONDecodeError, OSError):
            continue
        if isinstance(loaded, dict):
            data = loaded
            break
    merged = _apply_migrations(merge_defaults(data))
    merged.setdefault("working_dir", str(working_dir))
    _log_unknown_keys(merged, working_dir)
    return merged

