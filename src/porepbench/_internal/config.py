"""Runtime configuration resolved from the environment."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, field_validator

DEFAULT_DB_PATH = "bench.sqlite3"
DEFAULT_LOG_LEVEL = "WARNING"


def _str_from_env(var_name: str, default: str) -> str:
    raw = os.getenv(var_name)
    return raw.strip() if raw and raw.strip() else default


def _budget_from_env(var_name: str, default_ms: float) -> float:
    raw = os.getenv(var_name)
    if not raw:
        return default_ms
    try:
        return float(raw)
    except ValueError:
        return default_ms


class BenchConfig(BaseModel):
    """Settings for one benchmark process. CLI flags override the environment."""
    db_path: Path = Path(DEFAULT_DB_PATH)
    log_level: str = DEFAULT_LOG_LEVEL
    max_step1_ms: float = 5000.0
    max_step2_ms: float = 5000.0

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{v}'")
        return level

    @classmethod
    def from_env(cls, db_path: Optional[Path] = None, log_level: Optional[str] = None) -> "BenchConfig":
        return cls(
            db_path=db_path or Path(_str_from_env("POREP_BENCH_DB", DEFAULT_DB_PATH)),
            log_level=log_level or _str_from_env("POREP_BENCH_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            max_step1_ms=_budget_from_env("POREP_BENCH_MAX_STEP1_MS", 5000.0),
            max_step2_ms=_budget_from_env("POREP_BENCH_MAX_STEP2_MS", 5000.0),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
