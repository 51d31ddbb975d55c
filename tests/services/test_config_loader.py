import pytest

from devenv.errors import ConfigError
from devenv.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text(
        "distro: ubuntu-20.04\nbuild: false\nupstream_repo: acme/dev-env\n",
        encoding="utf-8",
    )

    loaded = ConfigLoader().load(settings)

    assert loaded["distro"] == "ubuntu-20.04"
    assert loaded["build"] is False
    assert loaded["upstream_repo"] == "acme/dev-env"


def test_config_loader_returns_empty_mapping_for_missing_file(tmp_path):
    assert ConfigLoader().load(tmp_path / "missing.yml") == {}
    assert ConfigLoader().load(None) == {}


def test_config_loader_returns_empty_mapping_for_empty_file(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("", encoding="utf-8")

    assert ConfigLoader().load(settings) == {}


def test_config_loader_rejects_unknown_keys(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("unknown_key: true\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Unknown settings keys"):
        ConfigLoader().load(settings)


def test_config_loader_rejects_malformed_yaml(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("distro: [unterminated\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid settings file"):
        ConfigLoader().load(settings)


def test_config_loader_rejects_non_mapping_root(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("- alpine\n- ubuntu\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="YAML mapping"):
        ConfigLoader().load(settings)


def test_config_loader_rejects_non_boolean_flags(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("tty: sometimes\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="'tty' must be true or false"):
        ConfigLoader().load(settings)


def test_config_loader_stringifies_numeric_distro(tmp_path):
    settings = tmp_path / "settings.yml"
    settings.write_text("distro: 12\n", encoding="utf-8")

    assert ConfigLoader().load(settings)["distro"] == "12"
