"""
Tests for YAML configuration loading.
"""

import pytest

from onspot.config import AppConfig


def test_load_from_yaml(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "data_file: data.json\n"
        "default_delivery_range_meters: 4500\n"
        "log_level: debug\n"
        "notifications:\n"
        "  endpoint: https://push.example.com/send\n",
        encoding="utf-8",
    )

    config = AppConfig.load_from_yaml(config_path)

    assert config.data_file == tmp_path / "data.json"
    assert config.default_delivery_range_meters == 4500
    assert config.log_level == "DEBUG"
    assert config.notifications.endpoint == "https://push.example.com/send"
    assert config.request_timeout_seconds == 10.0


def test_empty_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("", encoding="utf-8")

    config = AppConfig.load_from_yaml(config_path)

    assert config.default_delivery_range_meters == 5000.0
    assert config.notifications.endpoint == ""


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_yaml(tmp_path / "config.yaml")


@pytest.mark.parametrize(
    "content",
    [
        "default_delivery_range_meters: 0\n",
        "request_timeout_seconds: -1\n",
        "log_level: chatty\n",
        "- not\n- a mapping\n",
        "data_file: [unclosed\n",
    ],
)
def test_invalid_config_raises_value_error(tmp_path, content):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        AppConfig.load_from_yaml(config_path)
