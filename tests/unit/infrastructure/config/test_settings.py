import os
from pathlib import Path

import pytest

from shipscli.infrastructure.config import settings
from shipscli.infrastructure.config.settings import (
    DEFAULT_BASE_URL,
    get_cache_dir,
    get_config,
    get_log_level,
    get_shipsgo_api_key,
    get_shipsgo_base_url,
    load_configuration,
    set_config_for_testing,
)


@pytest.fixture
def fresh_config(monkeypatch):
    """Resets the module-level store so load_configuration runs again."""
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)


def test_yaml_values_are_read_with_dotted_keys(tmp_path, fresh_config, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("shipsgo:\n  base_url: https://example.test/v2\ncache:\n  dir: /tmp/shipscache\n")
    monkeypatch.delenv("SHIPSGO_BASE_URL", raising=False)

    load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert get_shipsgo_base_url() == "https://example.test/v2"
    assert get_cache_dir() == Path("/tmp/shipscache")


def test_environment_beats_yaml(tmp_path, fresh_config, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("logging:\n  level: info\n")
    monkeypatch.setenv("LOGGING_LEVEL", "debug")

    load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert get_log_level() == "DEBUG"


def test_dotenv_file_is_loaded(tmp_path, fresh_config, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("SHIPSCLI_TEST_FLAG=true\nSHIPSCLI_TEST_LIMIT=25\n")
    monkeypatch.delenv("SHIPSCLI_TEST_FLAG", raising=False)
    monkeypatch.delenv("SHIPSCLI_TEST_LIMIT", raising=False)

    load_configuration(config_file=tmp_path / "none.yaml", env_file=env_file)

    try:
        assert get_config("shipscli_test_flag") is True
        assert get_config("shipscli_test_limit") == 25
    finally:
        os.environ.pop("SHIPSCLI_TEST_FLAG", None)
        os.environ.pop("SHIPSCLI_TEST_LIMIT", None)


def test_non_mapping_yaml_is_ignored(tmp_path, fresh_config):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")

    load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert get_config("anything", "fallback") == "fallback"


def test_test_overrides_take_precedence(monkeypatch):
    monkeypatch.setenv("SHIPSGO_API_KEY", "from-env")
    set_config_for_testing({"SHIPSGO_API_KEY": "from-test"})

    assert get_shipsgo_api_key() == "from-test"


def test_api_key_from_environment():
    assert get_shipsgo_api_key() == "DUMMY_TEST_KEY_FOR_INIT"


def test_missing_api_key_is_none(monkeypatch, fresh_config):
    monkeypatch.delenv("SHIPSGO_API_KEY", raising=False)
    assert get_shipsgo_api_key() is None


def test_defaults(fresh_config, monkeypatch):
    monkeypatch.delenv("SHIPSGO_BASE_URL", raising=False)
    monkeypatch.delenv("LOGGING_LEVEL", raising=False)

    assert get_shipsgo_base_url() == DEFAULT_BASE_URL
    assert get_log_level() == "WARNING"
