"""Trade enhancer: runtime configuration.

Loads .env variables into a typed config object.  Business constants
(thresholds, weights, exit offsets) live in ``StrategyParameters``, not
here.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from enhancer.errors import ConfigError
from enhancer.models.parameters import DEFAULT_PARAMETERS, StrategyParameters


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    log_level: str = "INFO"
    account_equity: Optional[float] = None  # CLI default when --equity is omitted
    json_indent: int = 2
    parameters: StrategyParameters = DEFAULT_PARAMETERS


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ConfigError`` naming the variable when a value is malformed.
    """
    load_dotenv(dotenv_path=env_path)

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {log_level!r}")

    return Config(
        log_level=log_level,
        account_equity=_optional_float("ACCOUNT_EQUITY"),
        json_indent=_int("JSON_INDENT", 2),
    )


def _optional_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {value}")
    return value


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
