"""
Environment-based settings for the invoice tracker
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///./invoices.db"
DEFAULT_INVENTORY_GL_CODE = "1400"

STORAGE_BACKENDS = ("sql", "memory")
CSV_QUOTING_MODES = ("legacy", "rfc4180")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Structured configuration values read from the environment."""

    database_url: str = DEFAULT_DATABASE_URL
    storage_backend: str = "sql"
    strict_transitions: bool = False
    csv_quoting: str = "legacy"
    inventory_gl_code: str = DEFAULT_INVENTORY_GL_CODE
    seed_sample_data: bool = False
    log_level: str = "INFO"

    @property
    def uses_memory_storage(self) -> bool:
        return self.storage_backend == "memory"


@lru_cache(maxsize=1)
def get_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Return cached settings, loading the .env file once."""
    load_dotenv(dotenv_path=dotenv_path, override=False)

    storage_backend = os.getenv("STORAGE_BACKEND", "sql").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"STORAGE_BACKEND must be one of {STORAGE_BACKENDS}, got {storage_backend!r}"
        )

    csv_quoting = os.getenv("CSV_QUOTING", "legacy").strip().lower()
    if csv_quoting not in CSV_QUOTING_MODES:
        raise ValueError(
            f"CSV_QUOTING must be one of {CSV_QUOTING_MODES}, got {csv_quoting!r}"
        )

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        storage_backend=storage_backend,
        strict_transitions=_env_flag("STRICT_TRANSITIONS"),
        csv_quoting=csv_quoting,
        inventory_gl_code=os.getenv("INVENTORY_GL_CODE", DEFAULT_INVENTORY_GL_CODE),
        seed_sample_data=_env_flag("SEED_SAMPLE_DATA"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
