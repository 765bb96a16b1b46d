"""Configuration helpers for the operation engine."""
from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml  # type: ignore[import-untyped]

_DEFAULT_CONFIG: Dict[str, Any] = {
    "sampling": {
        "window_seconds": 2.0,
        "intervals": 8,
        "sample_timeout_seconds": 2.0,
        "memory_timeout_seconds": 2.0,
        "disk_timeout_seconds": 3.0,
    },
    "cpu": {
        "load_multiplier": 10.0,
    },
    "launch": {
        "settle_seconds": 0.5,
    },
    "browser": {
        "headless": False,
        "cad_url": "https://www.onshape.com",
        "screenshot_dir": "temp",
    },
    "telemetry": {
        "history_size": 50,
    },
    "logging": {
        "level": "INFO",
    },
}


_OVERRIDE_ENV_PREFIX = "OPSENGINE_CFG__"
_OVERRIDE_JSON_ENV = "OPSENGINE_CONFIG_OVERRIDES"


def config_path() -> Path:
    """Return the resolved configuration file path without loading."""
    env = os.environ.get("OPSENGINE_CONFIG")
    if env:
        return Path(env).expanduser().resolve()
    return Path(__file__).resolve().parents[1] / "config" / "opsengine.yaml"


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)  # type: ignore[arg-type]
        else:
            base[key] = value
    return base


def _normalize_env_path(raw: str) -> Sequence[str]:
    parts = [part for part in raw.split("__") if part]
    return [part.strip().lower().replace("-", "_") for part in parts]


def _coerce_override_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if stripped == "":
        return ""
    try:
        parsed = yaml.safe_load(stripped)
    except yaml.YAMLError:
        return value
    return parsed


def _assign_path(target: Dict[str, Any], path: Sequence[str], value: Any) -> None:
    if not path:
        return
    cursor: Dict[str, Any] = target
    for key in path[:-1]:
        existing = cursor.get(key)
        if not isinstance(existing, dict):
            existing = {}
            cursor[key] = existing
        cursor = existing
    cursor[path[-1]] = value


def _decode_mapping(raw: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError:
            return {}
    return data if isinstance(data, dict) else {}


def _load_runtime_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if key.startswith(_OVERRIDE_ENV_PREFIX):
            path = _normalize_env_path(key[len(_OVERRIDE_ENV_PREFIX):])
            if path:
                _assign_path(overrides, path, _coerce_override_value(value))

    json_payload = os.environ.get(_OVERRIDE_JSON_ENV)
    if json_payload:
        mapping = _decode_mapping(json_payload)
        if mapping:
            overrides = _merge(overrides, mapping)
    return overrides


def parse_override_value(raw: str) -> Any:
    """Parse a configuration override value using the same coercion as runtime overrides."""
    return _coerce_override_value(raw)


@lru_cache(maxsize=4)
def _load_config(resolved_path: str) -> Dict[str, Any]:
    base = copy.deepcopy(_DEFAULT_CONFIG)
    path = Path(resolved_path)
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if isinstance(data, dict):
            base = _merge(base, data)
    return base


def get_config(*, include_runtime_overrides: bool = True) -> Dict[str, Any]:
    """Return a copy of the merged configuration."""
    config = copy.deepcopy(_load_config(str(config_path())))
    if include_runtime_overrides:
        overrides = _load_runtime_overrides()
        if overrides:
            config = _merge(config, overrides)
    return config


def save_config(config: Dict[str, Any]) -> None:
    """Persist configuration to disk and refresh the cache."""
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config, handle, sort_keys=False)
    _load_config.cache_clear()  # type: ignore[attr-defined]


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    return value if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class EngineSettings:
    """Typed view over the configuration sections the engine consumes."""

    window_seconds: float = 2.0
    intervals: int = 8
    sample_timeout: float = 2.0
    memory_timeout: float = 2.0
    disk_timeout: float = 3.0
    load_multiplier: float = 10.0
    launch_settle: float = 0.5
    browser_headless: bool = False
    cad_url: str = "https://www.onshape.com"
    screenshot_dir: str = "temp"
    history_size: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None) -> "EngineSettings":
        cfg = config if config is not None else get_config()
        sampling = _section(cfg, "sampling")
        cpu = _section(cfg, "cpu")
        launch = _section(cfg, "launch")
        browser = _section(cfg, "browser")
        telemetry = _section(cfg, "telemetry")
        log_cfg = _section(cfg, "logging")
        defaults = cls()
        return cls(
            window_seconds=float(sampling.get("window_seconds", defaults.window_seconds)),
            intervals=max(1, int(sampling.get("intervals", defaults.intervals))),
            sample_timeout=float(sampling.get("sample_timeout_seconds", defaults.sample_timeout)),
            memory_timeout=float(sampling.get("memory_timeout_seconds", defaults.memory_timeout)),
            disk_timeout=float(sampling.get("disk_timeout_seconds", defaults.disk_timeout)),
            load_multiplier=float(cpu.get("load_multiplier", defaults.load_multiplier)),
            launch_settle=float(launch.get("settle_seconds", defaults.launch_settle)),
            browser_headless=bool(browser.get("headless", defaults.browser_headless)),
            cad_url=str(browser.get("cad_url") or defaults.cad_url),
            screenshot_dir=str(browser.get("screenshot_dir") or defaults.screenshot_dir),
            history_size=max(1, int(telemetry.get("history_size", defaults.history_size))),
            log_level=str(log_cfg.get("level") or defaults.log_level).upper(),
        )

    @property
    def log_level_number(self) -> int:
        level = logging.getLevelName(self.log_level)
        return level if isinstance(level, int) else logging.INFO


__all__ = [
    "EngineSettings",
    "config_path",
    "get_config",
    "parse_override_value",
    "save_config",
]
