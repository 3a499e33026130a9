import pytest

from courier import Settings, configure, get_default_settings, override, settings
from courier._config import log_error


def test_default_settings(monkeypatch: pytest.MonkeyPatch):
    for name in ("COURIER_RETRY", "COURIER_TIMEOUT", "COURIER_SYNC", "COURIER_TRANSPORT", "COURIER_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)

    assert get_default_settings() == Settings(
        retry=0,
        sync=None,
        timeout=None,
        error_handler=log_error,
        transport=None,
        cache=None,
        poll_interval=0.05,
    )


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COURIER_RETRY", "2")
    monkeypatch.setenv("COURIER_TIMEOUT", "1.5")
    monkeypatch.setenv("COURIER_SYNC", "false")
    monkeypatch.setenv("COURIER_TRANSPORT", "curl")
    monkeypatch.setenv("COURIER_POLL_INTERVAL", "0.1")

    defaults = get_default_settings()

    assert defaults.retry == 2
    assert defaults.timeout == 1.5
    assert defaults.sync is False
    assert defaults.transport == "curl"
    assert defaults.poll_interval == 0.1


def test_configure_updates_live_settings():
    configure(retry=4, timeout=3)

    assert settings.retry == 4
    assert settings.timeout == 3


def test_configure_rejects_unknown_names():
    with pytest.raises(TypeError, match="Unknown settings: retries"):
        configure(retries=1)
    with pytest.raises(ValueError):
        configure(retry=-1)


def test_override_restores_previous_values():
    configure(retry=1)

    with override(retry=5, sync=False) as current:
        assert current is settings
        assert settings.retry == 5
        assert settings.sync is False

    assert settings.retry == 1
    assert settings.sync is None
