from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/research-reader/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "work_dir": "RESEARCH_READER_WORK_DIR",
    "compress_level": "RESEARCH_READER_COMPRESS_LEVEL",
    "log_level": "RESEARCH_READER_LOG_LEVEL",
    "fsync": "RESEARCH_READER_FSYNC",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("RESEARCH_READER_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class ReaderConfig:
    # Base directory for session working directories; None uses the system temp dir.
    work_dir: str | None = None
    compress_level: int = 6
    log_level: str = "WARNING"
    fsync: bool = True

    def work_root(self) -> Path | None:
        if not self.work_dir:
            return None
        return Path(self.work_dir).expanduser()


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_compress_level(value: int, default: int) -> int:
    if 0 <= value <= 9:
        return value
    warnings.warn(f"Invalid compress_level: {value!r}", RuntimeWarning, stacklevel=3)
    return default


def _coerce_log_level(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip().upper() in LOG_LEVELS:
        return value.strip().upper()
    if value is not None:
        warnings.warn(f"Invalid log_level: {value!r}", RuntimeWarning, stacklevel=3)
    return default


def load_config(path: Path | None = None) -> ReaderConfig:
    cfg = ReaderConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(f"Ignoring config file: {exc}", RuntimeWarning, stacklevel=2)
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: ReaderConfig, data: dict[str, Any]) -> ReaderConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key == "compress_level":
            parsed = _parse_int(value, cfg.compress_level, key=key)
            cfg.compress_level = _coerce_compress_level(parsed, cfg.compress_level)
            continue
        if key == "fsync":
            cfg.fsync = _coerce_bool(value, cfg.fsync, key=key)
            continue
        if key == "log_level":
            cfg.log_level = _coerce_log_level(value, cfg.log_level)
            continue
        setattr(cfg, key, value)
    return cfg

