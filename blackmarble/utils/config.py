"""Runtime configuration for the Black Marble pipeline"""

# pylint: disable=W1201

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from blackmarble.utils.bm_logger import bmLogger


# -----------------------------------------------------------------------------
# Load .env from project root
# -----------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent.parent
env_path = ROOT / ".env"
if env_path.exists():
    load_dotenv(dotenv_path=env_path, override=False)


# -----------------------------------------------------------------------------
# Helpers for parsing & validation
# -----------------------------------------------------------------------------
def _clean(raw: str) -> str:
    return raw.strip().strip("'").strip('"')

def _get_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return _clean(raw)

def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(_clean(raw))
    except ValueError as e:
        msg = f"Invalid float for {name}: {raw!r}"
        bmLogger.error(msg)
        raise RuntimeError(msg) from e

def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(_clean(raw))
    except ValueError as e:
        msg = f"Invalid int for {name}: {raw!r}"
        bmLogger.error(msg)
        raise RuntimeError(msg) from e

def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    s = _clean(raw).lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    msg = f"Invalid boolean for {name}: {raw!r}"
    bmLogger.error(msg)
    raise RuntimeError(msg)

def _log_level_to_std(name: str) -> str:
    # Accept things like DEBUG, Info, "warning", etc.
    lvl = (_get_str(name, "INFO") or "INFO").upper()
    valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
    if lvl not in valid:
        msg = f"Invalid log level {lvl!r}. Choose one of {sorted(valid)}."
        bmLogger.error(msg)
        raise RuntimeError(msg)
    return lvl

# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Config:
    """Options passed through one pipeline call"""
    # System
    log_level: str = "INFO"

    # Remote archive (LAADS DAAC)
    archive_url: str = "https://ladsweb.modaps.eosdis.nasa.gov/archive/allData"
    collection: str = "5200"

    # HTTP behaviour
    timeout_sec: float = 120.0
    min_interval_sec: float = 0.0
    total_retries: int = 3
    backoff: float = 0.6
    chunk_size: int = 1024 * 512

    # Pipeline behaviour
    raise_if_empty: bool = False
    temp_dir: Optional[str] = field(default=None)

    def with_options(self, **changes) -> "Config":
        """Copy with some fields replaced."""
        return replace(self, **changes)

    def listing_url(self, product_id: str, year: str, day: str) -> str:
        """CSV listing of every granule of a product for one archive day."""
        return f"{self.archive_url.rstrip('/')}/{self.collection}/{product_id}/{year}/{day}.csv"

    def file_url(self, product_id: str, year: str, day: str, name: str) -> str:
        """Download location of one granule."""
        return f"{self.archive_url.rstrip('/')}/{self.collection}/{product_id}/{year}/{day}/{name}"


def load_config() -> Config:
    """Load config from the environment (and .env), falling back to defaults"""
    defaults = Config()
    cfg = Config(
        log_level=_log_level_to_std("BM_LOG_LEVEL"),
        archive_url=_get_str("BM_ARCHIVE_URL", defaults.archive_url),
        collection=_get_str("BM_COLLECTION", defaults.collection),
        timeout_sec=_get_float("BM_TIMEOUT", defaults.timeout_sec),
        min_interval_sec=_get_float("BM_MIN_INTERVAL_SEC", defaults.min_interval_sec),
        total_retries=_get_int("BM_TOTAL_RETRIES", defaults.total_retries),
        backoff=_get_float("BM_BACKOFF", defaults.backoff),
        chunk_size=_get_int("BM_CHUNK_SIZE", defaults.chunk_size),
        raise_if_empty=_get_bool("BM_RAISE_IF_EMPTY", defaults.raise_if_empty),
        temp_dir=_get_str("BM_TEMP_DIR"),
    )
    if cfg.timeout_sec <= 0:
        msg = "BM_TIMEOUT must be positive"
        bmLogger.error(msg)
        raise RuntimeError(msg)
    if cfg.chunk_size <= 0:
        msg = "BM_CHUNK_SIZE must be positive"
        bmLogger.error(msg)
        raise RuntimeError(msg)

    bmLogger.debug("Archive: " + cfg.archive_url + " (collection " + cfg.collection + ")")
    return cfg
