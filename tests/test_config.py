"""Configuration loading tests."""

from pathlib import Path

import pytest

from apidoc.config import ENV_OVERRIDES, ConfigError, load_config, load_settings
from apidoc.constants import DEFAULT_BASE_URL, DEFAULT_MODEL, MAX_TOKENS


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from APIDOC_* variables set in the developer's shell."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("APIDOC_HOME", raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path):
    config = load_config(tmp_path / "missing.ini", data_dir=tmp_path)

    assert config.llm.model == DEFAULT_MODEL
    assert config.llm.base_url == DEFAULT_BASE_URL
    assert config.llm.api_key == ""
    assert config.llm.max_tokens == MAX_TOKENS
    assert config.llm.max_retries == 3
    assert config.db_path == tmp_path / "apidoc.db"
    assert config.llm_log_path == tmp_path / "logs" / "llm-queries.jsonl"


def test_values_read_from_ini(tmp_path):
    path = _write(
        tmp_path / "config.ini",
        "[llm]\nmodel = local-model\nmax_tokens = 2048\ntemperature = 0.5\n"
        "[paths]\ndb_file = sessions.db\n",
    )

    config = load_config(path, data_dir=tmp_path)

    assert config.llm.model == "local-model"
    assert config.llm.max_tokens == 2048
    assert config.llm.temperature == 0.5
    assert config.db_path == tmp_path / "sessions.db"


def test_invalid_type_raises(tmp_path):
    path = _write(tmp_path / "config.ini", "[llm]\nmax_tokens = lots\n")

    with pytest.raises(ConfigError, match="max_tokens"):
        load_config(path, data_dir=tmp_path)


def test_out_of_range_raises(tmp_path):
    path = _write(tmp_path / "config.ini", "[llm]\ntemperature = 3.5\n")

    with pytest.raises(ConfigError, match="maximum"):
        load_config(path, data_dir=tmp_path)


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "config.ini", "[llm]\nmodel = from-file\n")
    monkeypatch.setenv("APIDOC_LLM_MODEL", "from-env")
    monkeypatch.setenv("APIDOC_LLM_API_KEY", "sk-env")
    monkeypatch.setenv("APIDOC_LLM_MAX_TOKENS", "1024")

    config = load_config(path, data_dir=tmp_path)

    assert config.llm.model == "from-env"
    assert config.llm.api_key == "sk-env"
    assert config.llm.max_tokens == 1024


def test_unparseable_environment_override_is_ignored(tmp_path, monkeypatch, caplog):
    monkeypatch.setenv("APIDOC_LLM_TEMPERATURE", "warm")

    config = load_config(None, data_dir=tmp_path)

    assert config.llm.temperature == 0.2
    assert "APIDOC_LLM_TEMPERATURE" in caplog.text


def test_load_settings_uses_apidoc_home(tmp_path, monkeypatch):
    _write(tmp_path / "config.ini", "[llm]\nbase_url = http://localhost:8000/v1\n")
    monkeypatch.setenv("APIDOC_HOME", str(tmp_path))

    settings = load_settings()

    assert settings.data_dir == tmp_path
    assert settings.llm.base_url == "http://localhost:8000/v1"
    assert load_settings() is settings
