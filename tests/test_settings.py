"""Environment configuration and store selection"""

import pytest

import aggregation_core
from record_store import SQLiteRecordStore, SupabaseRecordStore
from settings import DEFAULT_TREND_MONTHS, Settings, build_store, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.backend == "sqlite"
    assert settings.trend_months == DEFAULT_TREND_MONTHS


def test_reads_environment():
    settings = load_settings({
        "HISAB_BACKEND": " Supabase ",
        "SUPABASE_URL": "https://demo.supabase.co",
        "SUPABASE_KEY": "key",
        "HISAB_HTTP_TIMEOUT": "12.5",
        "HISAB_LOG_LEVEL": "debug",
        "HISAB_TREND_MONTHS": "6",
    })
    assert settings.backend == "supabase"
    assert settings.http_timeout == 12.5
    assert settings.log_level == "DEBUG"
    assert settings.trend_months == 6



def test_trend_months_default_matches_chart_default():
    assert DEFAULT_TREND_MONTHS is aggregation_core.DEFAULT_TREND_MONTHS
    assert load_settings({"HISAB_AGING_LIMIT_MONTHS": "6"}).trend_months == aggregation_core.DEFAULT_TREND_MONTHS

@pytest.mark.parametrize("environ,message", [
    ({"HISAB_BACKEND": "mysql"}, "HISAB_BACKEND"),
    ({"HISAB_LOG_LEVEL": "LOUD"}, "HISAB_LOG_LEVEL"),
    ({"HISAB_HTTP_TIMEOUT": "soon"}, "must be a number"),
    ({"HISAB_TREND_MONTHS": "0"}, "greater than zero"),
    ({"HISAB_TREND_MONTHS": "1.5"}, "must be a number"),
    ({"HISAB_BACKEND": "supabase", "SUPABASE_URL": "https://x"}, "SUPABASE_KEY"),
])
def test_invalid_values(environ, message):
    with pytest.raises(ValueError, match=message):
        load_settings(environ)


def test_build_sqlite_store(tmp_path):
    store = build_store(Settings(db_path=str(tmp_path / "x.db"), blob_dir=str(tmp_path / "f")))
    assert isinstance(store, SQLiteRecordStore)
    assert (tmp_path / "x.db").exists()


def test_build_hosted_store():
    store = build_store(Settings(backend="supabase", supabase_url="https://x", supabase_key="k",
                                 http_timeout=7))
    assert isinstance(store, SupabaseRecordStore)
    assert store.timeout == 7
    assert store.table_prefix == "hisab_"
