"""
HISAB - Configuration
=====================

Settings come from environment variables; every variable has a default
so `streamlit run main.py` works with no setup (local SQLite file).

    HISAB_BACKEND             sqlite | supabase          (sqlite)
    HISAB_DB_PATH             SQLite file                 (hisab.db)
    HISAB_BLOB_DIR            local attachment folder     (hisab_files)
    SUPABASE_URL              hosted project URL
    SUPABASE_KEY              hosted API key
    HISAB_TABLE_PREFIX        hosted table prefix         (hisab_)
    HISAB_DOCUMENTS_BUCKET    attachment bucket           (documents)
    HISAB_HTTP_TIMEOUT        seconds                     (30)
    HISAB_LOG_LEVEL           logging level               (INFO)
    HISAB_TREND_MONTHS        months in the trend chart   (12)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from aggregation_core import DEFAULT_TREND_MONTHS
from record_store import RecordStore, SQLiteRecordStore, SupabaseRecordStore

BACKENDS = ("sqlite", "supabase")

DEFAULT_DB_PATH = "hisab.db"
DEFAULT_BLOB_DIR = "hisab_files"
DEFAULT_TABLE_PREFIX = "hisab_"
DEFAULT_DOCUMENTS_BUCKET = "documents"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"
    db_path: str = DEFAULT_DB_PATH
    blob_dir: str = DEFAULT_BLOB_DIR
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    table_prefix: str = DEFAULT_TABLE_PREFIX
    documents_bucket: str = DEFAULT_DOCUMENTS_BUCKET
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    trend_months: int = DEFAULT_TREND_MONTHS


def _positive_number(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero, got {raw!r}")
    return value


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    """
    Reads the environment.

    Raises:
        ValueError: unknown backend or log level, non-numeric/negative
            timeout or month count, missing credentials for supabase
    """
    backend = environ.get("HISAB_BACKEND", "sqlite").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"HISAB_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

    log_level = environ.get("HISAB_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"HISAB_LOG_LEVEL is not a logging level: {log_level!r}")

    supabase_url = environ.get("SUPABASE_URL") or None
    supabase_key = environ.get("SUPABASE_KEY") or None
    if backend == "supabase" and not (supabase_url and supabase_key):
        raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the supabase backend")

    return Settings(
        backend=backend,
        db_path=environ.get("HISAB_DB_PATH") or DEFAULT_DB_PATH,
        blob_dir=environ.get("HISAB_BLOB_DIR") or DEFAULT_BLOB_DIR,
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        table_prefix=environ.get("HISAB_TABLE_PREFIX", DEFAULT_TABLE_PREFIX),
        documents_bucket=environ.get("HISAB_DOCUMENTS_BUCKET") or DEFAULT_DOCUMENTS_BUCKET,
        http_timeout=_positive_number(environ, "HISAB_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, float),
        log_level=log_level,
        trend_months=_positive_number(environ, "HISAB_TREND_MONTHS", DEFAULT_TREND_MONTHS, int),
    )


def build_store(settings: Settings) -> RecordStore:
    """The record store the settings point at"""
    if settings.backend == "supabase":
        return SupabaseRecordStore(
            url=settings.supabase_url,
            api_key=settings.supabase_key,
            table_prefix=settings.table_prefix,
            timeout=settings.http_timeout,
        )
    return SQLiteRecordStore(db_path=settings.db_path, blob_dir=settings.blob_dir)


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
