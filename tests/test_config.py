from __future__ import annotations

import pytest

from circolari_monitor import config, main
from circolari_monitor.models import MonitorSettings


def test_missing_telegram_credentials_is_fatal(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", None)
    monkeypatch.setattr(config, "TELEGRAM_CHANNEL_ID", "@circolari")

    with pytest.raises(config.ConfigError, match="TELEGRAM_BOT_TOKEN"):
        config.validate()


def test_test_mode_needs_no_credentials(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", None)
    monkeypatch.setattr(config, "TELEGRAM_CHANNEL_ID", None)

    config.validate(test_mode=True)


def test_invalid_verification_period_rejected(monkeypatch) -> None:
    monkeypatch.setattr(config, "VERIFICATION_PERIOD", 0)

    with pytest.raises(config.ConfigError):
        config.validate(test_mode=True)


@pytest.mark.parametrize("name", ["VERIFICATION_WINDOW", "MAX_ITEMS_PER_CYCLE"])
def test_negative_item_limits_rejected(monkeypatch, name) -> None:
    monkeypatch.setattr(config, name, -5)

    with pytest.raises(config.ConfigError, match=name):
        config.validate(test_mode=True)


def test_zero_item_limits_accepted(monkeypatch) -> None:
    monkeypatch.setattr(config, "VERIFICATION_WINDOW", 0)
    monkeypatch.setattr(config, "MAX_ITEMS_PER_CYCLE", 0)

    config.validate(test_mode=True)


def test_build_settings_uses_module_values(monkeypatch) -> None:
    monkeypatch.setattr(config, "CHECK_INTERVAL_SECONDS", 42.0)
    monkeypatch.setattr(config, "STATE_FILE", "custom.db")

    settings = config.build_settings()

    assert isinstance(settings, MonitorSettings)
    assert settings.check_interval_seconds == 42.0
    assert settings.state_file == "custom.db"


@pytest.mark.parametrize("raw, expected", [("7", 7), ("x", 3), (None, 3)])
def test_parse_int_falls_back(raw, expected) -> None:
    assert config._parse_int(raw, 3) == expected


def test_main_exits_on_invalid_config(monkeypatch) -> None:
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", None)
    monkeypatch.setattr(config, "TELEGRAM_CHANNEL_ID", None)

    with pytest.raises(SystemExit) as exc:
        main.main([])
    assert exc.value.code == 1
