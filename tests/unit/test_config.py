"""Unit tests for config.py"""

import pytest
from pydantic import ValidationError

from mdillustrate.config import load_config


def test_load_config_uses_env_db_url(monkeypatch):
    """MDILLUSTRATE_DB_URL env var is picked up by load_config."""
    monkeypatch.setenv("MDILLUSTRATE_DB_URL", "sqlite:///env.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///env.db"


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """MDILLUSTRATE_IMAGE_STYLE takes precedence over config.yaml image_style."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("image_style: diagram\n")
    monkeypatch.setenv("MDILLUSTRATE_IMAGE_STYLE", "card")
    settings = load_config()
    assert settings.image_style == "card"


def test_load_config_reads_config_yaml(tmp_path, monkeypatch):
    """Values in config.yaml are applied when no env var or override exists."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("connection_mode: proxy\nproxy_token: secret\nimage_count: 2\n")
    settings = load_config()
    assert settings.connection_mode == "proxy"
    assert settings.proxy_token == "secret"
    assert settings.image_count == 2


def test_load_config_cli_overrides_env(monkeypatch):
    """A non-None CLI override beats the env var; None overrides are ignored."""
    monkeypatch.setenv("MDILLUSTRATE_IMAGE_COUNT", "3")
    assert load_config(overrides={"image_count": 6}).image_count == 6
    assert load_config(overrides={"image_count": None}).image_count == 3


def test_load_config_defaults(tmp_path, monkeypatch):
    """Settings defaults apply when nothing else is configured."""
    monkeypatch.chdir(tmp_path)
    settings = load_config()
    assert settings.db_url == "sqlite:///mdillustrate.db"
    assert settings.connection_mode == "direct"
    assert settings.image_count == 4
    assert settings.attachment_folder == "attachments/ai-summary"
    assert settings.poll_max_attempts == 60


def test_load_config_invalid_yaml(tmp_path, monkeypatch):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


def test_load_config_env_coerces_types(monkeypatch):
    """Env values are strings; pydantic coerces them to the field types."""
    monkeypatch.setenv("MDILLUSTRATE_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("MDILLUSTRATE_CREATE_BACKUP", "false")
    settings = load_config()
    assert settings.poll_interval == 0.5
    assert settings.create_backup is False


@pytest.mark.parametrize("field,value", [
    ("image_count", 0),
    ("image_count", 9),
    ("connection_mode", "carrier-pigeon"),
    ("send_mode", "everything"),
    ("poll_max_attempts", 0),
])
def test_load_config_rejects_out_of_range(field, value):
    """Out-of-range or unknown values fail validation."""
    with pytest.raises(ValidationError):
        load_config(overrides={field: value})
