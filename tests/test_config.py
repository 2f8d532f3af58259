"""
Environment-driven settings
"""
import pytest

from invoice_tracker.config import get_settings
from invoice_tracker.storage import MemoryStorage, build_storage


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_env_values_are_read(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("STRICT_TRANSITIONS", "true")
    monkeypatch.setenv("CSV_QUOTING", "RFC4180")
    monkeypatch.setenv("INVENTORY_GL_CODE", "1450")
    monkeypatch.setenv("SEED_SAMPLE_DATA", "1")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.uses_memory_storage
    assert settings.strict_transitions is True
    assert settings.csv_quoting == "rfc4180"
    assert settings.inventory_gl_code == "1450"
    assert settings.seed_sample_data is True
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("name, value", [
    ("STORAGE_BACKEND", "redis"),
    ("CSV_QUOTING", "excel"),
])
def test_invalid_values_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        get_settings()


def test_build_storage_seeds_when_asked(monkeypatch, clock):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SEED_SAMPLE_DATA", "true")

    storage = build_storage(get_settings(), clock)

    assert isinstance(storage, MemoryStorage)
    assert storage.get_user_by_username("admin") is not None
