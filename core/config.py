"""Emulator settings.

`load_config` accepts a path to a JSON file, a dict or None and returns an
EmulatorConfig with defaults filled in for missing keys.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

from core.emulator import DEFAULT_MAX_STEPS
from core.stack import DEFAULT_STACK_SIZE

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


@dataclass(frozen=True)
class EmulatorConfig:
    stack_base: int = 0
    stack_size: int = DEFAULT_STACK_SIZE
    max_steps: int = DEFAULT_MAX_STEPS
    step_interval_ms: int = 200
    log_level: str = "WARNING"

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULTS: Dict[str, Any] = EmulatorConfig().to_json()


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            return int(raw, 16) if raw.lower().startswith("0x") else int(raw, 10)
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
    raise ConfigError(f"{key} must be an integer, got {value!r}")


def _validate(cfg: EmulatorConfig) -> None:
    if cfg.stack_base < 0:
        raise ConfigError("stack_base must be non-negative")
    if cfg.stack_size <= 0:
        raise ConfigError("stack_size must be positive")
    if cfg.max_steps <= 0:
        raise ConfigError("max_steps must be positive")
    if cfg.step_interval_ms < 0:
        raise ConfigError("step_interval_ms must be non-negative")
    if cfg.log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {sorted(LOG_LEVELS)}")


def load_config(path_or_dict: str | Path | Dict[str, Any] | None = None) -> EmulatorConfig:
    if path_or_dict is None:
        data: Dict[str, Any] = {}
    elif isinstance(path_or_dict, dict):
        data = dict(path_or_dict)
    else:
        path = Path(path_or_dict)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8")) or {}
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to load config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} does not contain an object")

    unknown = set(data) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    merged = dict(DEFAULTS)
    merged.update(data)
    cfg = EmulatorConfig(
        stack_base=_to_int("stack_base", merged["stack_base"]),
        stack_size=_to_int("stack_size", merged["stack_size"]),
        max_steps=_to_int("max_steps", merged["max_steps"]),
        step_interval_ms=_to_int("step_interval_ms", merged["step_interval_ms"]),
        log_level=str(merged["log_level"]).upper(),
    )
    _validate(cfg)
    return cfg


def log_level_value(cfg: EmulatorConfig) -> int:
    return logging.getLevelName(cfg.log_level)
