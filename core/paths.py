from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "get_default_settings_paths",
    "get_logs_dir",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    test_file = path / f".write_test_{os.getpid()}"
    try:
        with open(test_file, "w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True
    except OSError:
        try:
            if test_file.exists():
                test_file.unlink()
        except OSError:  # pragma: no cover - best effort cleanup
            pass
        return False


def _env_home() -> Optional[Path]:
    env_home = os.environ.get("SMARTDUMP_HOME")
    if not env_home:
        return None
    try:
        return _expand_path(env_home)
    except (OSError, RuntimeError):
        return None


def resolve_working_dir() -> Path:
    """Resolve the SmartDump working directory, creating it if required."""

    env_path = _env_home()
    if env_path is not None and _ensure_writable_dir(env_path):
        return env_path

    default = Path.home() / ".smartdump"
    if _ensure_writable_dir(default):
        return default

    fallback = _PROJECT_ROOT / ".smartdump"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
