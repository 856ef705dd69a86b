"""Harness configuration from TOML and environment overrides."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from retryharness.logging import LOG_LEVELS
from retryharness.policy import (
    DEFAULT_COUNT,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_WAIT_SECONDS,
    CountPolicy,
    DeadlinePolicy,
    RetryPolicy,
)

DEFAULT_CONFIG_PATH = Path("retryharness.toml")
POLICY_ENV = "RETRYHARNESS_POLICY"
TIMEOUT_ENV = "RETRYHARNESS_TIMEOUT"
COUNT_ENV = "RETRYHARNESS_COUNT"
WAIT_ENV = "RETRYHARNESS_WAIT"
LOG_FILE_ENV = "RETRYHARNESS_LOG_FILE"

_VALID_POLICIES = {"deadline", "count"}


class HarnessConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    policy: Literal["deadline", "count"] = "deadline"
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    count: int = Field(default=DEFAULT_COUNT, ge=1)
    wait_seconds: float = Field(default=DEFAULT_WAIT_SECONDS, ge=0)
    log_level: str = "INFO"
    log_file: str = ""

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return normalized


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _sanitize(raw: dict[str, object], base: HarnessConfig | None = None) -> HarnessConfig:
    cfg = base.model_copy() if base is not None else HarnessConfig()

    policy = raw.get("policy", cfg.policy)
    if isinstance(policy, str) and policy.strip().lower() in _VALID_POLICIES:
        cfg.policy = cast(Literal["deadline", "count"], policy.strip().lower())

    timeout = _as_float(raw.get("timeout_seconds"))
    if timeout is not None and timeout > 0:
        cfg.timeout_seconds = timeout

    attempts = _as_int(raw.get("count"))
    if attempts is not None and attempts >= 1:
        cfg.count = attempts

    wait = _as_float(raw.get("wait_seconds"))
    if wait is not None and wait >= 0:
        cfg.wait_seconds = wait

    log_level = raw.get("log_level", cfg.log_level)
    if isinstance(log_level, str) and log_level.strip().upper() in LOG_LEVELS:
        cfg.log_level = log_level

    log_file = raw.get("log_file", cfg.log_file)
    if isinstance(log_file, str):
        cfg.log_file = log_file.strip()

    return cfg


def _env_overrides() -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, env_name in (
        ("policy", POLICY_ENV),
        ("timeout_seconds", TIMEOUT_ENV),
        ("count", COUNT_ENV),
        ("wait_seconds", WAIT_ENV),
        ("log_file", LOG_FILE_ENV),
    ):
        value = os.getenv(env_name, "").strip()
        if value:
            overrides[key] = value
    return overrides


def _read_toml(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return {}
    section = raw.get("retryharness", raw)
    if not isinstance(section, dict):
        return {}
    return cast(dict[str, object], section)


def load_config(path: str | Path | None = None) -> HarnessConfig:
    from_file = _sanitize(_read_toml(get_config_path(path)))
    return _sanitize(_env_overrides(), from_file)


def build_policy(config: HarnessConfig) -> RetryPolicy:
    """Create a fresh single-use policy described by config."""
    if config.policy == "count":
        return CountPolicy(count=config.count, wait=config.wait_seconds)
    return DeadlinePolicy(timeout=config.timeout_seconds, wait=config.wait_seconds)
