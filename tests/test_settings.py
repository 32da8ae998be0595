from geocell.config import settings as settings_module
from geocell.config.settings import Settings, get_logging_config, get_settings


def test_packaged_defaults_load():
    settings = get_settings()
    assert isinstance(settings, Settings)
    assert settings.grid.default_level == 16
    assert settings.covering.default_max_cells == 100
    assert settings.covering.absolute_max_cells == 500
    assert settings.query.token_attribute == "s2_cell"


def test_logging_config_is_a_dict_config():
    config = get_logging_config()
    assert config["version"] == 1
    assert "console" in config["handlers"]


def test_env_overrides_and_external_yaml(monkeypatch, tmp_path):
    path = tmp_path / "geocell.yaml"
    path.write_text("grid:\n  default_level: 12\nquery:\n  max_concurrency: 3\n", encoding="utf-8")
    monkeypatch.setenv("GEOCELL_CONFIG_PATH", str(path))
    monkeypatch.setenv("GEOCELL_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("GEOCELL_MAX_CONCURRENCY", "4")

    settings_module.get_settings.cache_clear()
    try:
        settings = settings_module.get_settings()
        assert settings.grid.default_level == 12
        assert settings.query.max_concurrency == 4
        assert settings.app.log_level == "DEBUG"
        # Keys missing from the external file fall back to model defaults.
        assert settings.covering.default_max_cells == 100
    finally:
        monkeypatch.undo()
        settings_module.get_settings.cache_clear()
