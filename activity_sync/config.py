from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .classifier import CANCELLED_ACTION, EXCLUDED_MODULE, SYSTEM_EXECUTOR, ClassifierRules


@dataclass(frozen=True, slots=True)
class Config:
    discord_token: str
    guild_id: int
    db_path: Path
    verify_max_attempts: int
    verify_interval_seconds: float
    rules: ClassifierRules


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _required_int_env(name: str) -> int:
    value = _required_env(name)
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _positive_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc

    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _names_env(name: str) -> frozenset[str]:
    raw = os.getenv(name, "")
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def load_rules() -> ClassifierRules:
    return ClassifierRules(
        system_executor=os.getenv("SYSTEM_EXECUTOR", SYSTEM_EXECUTOR).strip(),
        excluded_executors=_names_env("EXCLUDED_EXECUTORS"),
        excluded_module=os.getenv("EXCLUDED_MODULE", EXCLUDED_MODULE).strip(),
        cancelled_action=os.getenv("CANCELLED_ACTION", CANCELLED_ACTION).strip(),
    )


def load_config() -> Config:
    return Config(
        discord_token=_required_env("DISCORD_TOKEN"),
        guild_id=_required_int_env("GUILD_ID"),
        db_path=Path(os.getenv("ACTIVITY_DB_PATH", "activity_sync.db").strip()),
        verify_max_attempts=_positive_int_env("VERIFY_MAX_ATTEMPTS", 5),
        verify_interval_seconds=_positive_float_env("VERIFY_INTERVAL_SECONDS", 2.0),
        rules=load_rules(),
    )
