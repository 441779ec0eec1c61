from pathlib import Path

import pytest

import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        config.BASE_DIR_ENV,
        config.URL_MODE_ENV,
        config.CLEAR_RESETS_SORT_ENV,
        config.MAX_DEPTH_ENV,
        config.LOG_LEVEL_ENV,
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = config.load_settings()

    assert settings == config.FacetSettings()
    assert settings.base_dir == Path("_site")
    assert settings.url_mode == "path"
    assert settings.clear_resets_sort is True
    assert settings.max_depth is None


def test_environment_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv(config.BASE_DIR_ENV, str(tmp_path))
    monkeypatch.setenv(config.URL_MODE_ENV, " HASH ")
    monkeypatch.setenv(config.CLEAR_RESETS_SORT_ENV, "0")
    monkeypatch.setenv(config.MAX_DEPTH_ENV, "2")

    settings = config.load_settings()

    assert settings.base_dir == tmp_path
    assert settings.url_mode == "hash"
    assert settings.clear_resets_sort is False
    assert settings.max_depth == 2


def test_invalid_url_mode_is_rejected(monkeypatch):
    monkeypatch.setenv(config.URL_MODE_ENV, "fragment")

    with pytest.raises(ValueError, match="FACETFLOW_URL_MODE"):
        config.get_url_mode()


def test_blank_flag_keeps_default(monkeypatch):
    monkeypatch.setenv(config.CLEAR_RESETS_SORT_ENV, " ")

    assert config.load_settings().clear_resets_sort is True


def test_unknown_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv(config.LOG_LEVEL_ENV, "verbose")

    with pytest.raises(ValueError, match="FACETFLOW_LOG_LEVEL"):
        config.setup_logging()
    with pytest.raises(ValueError, match="'CHATTY'"):
        config.setup_logging("chatty")
