from __future__ import annotations

from flymap.core.config import Settings


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("FLYMAP_MAX_RECONNECT_ATTEMPTS", "7")
    monkeypatch.setenv("FLYMAP_RECONNECT_BASE_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("FLYMAP_DEBUG", "true")

    s = Settings()
    assert s.max_reconnect_attempts == 7
    assert s.reconnect_base_delay_seconds == 0.5
    assert s.debug is True


def test_invalid_numbers_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("FLYMAP_MAX_RECONNECT_ATTEMPTS", "many")
    monkeypatch.setenv("FLYMAP_UPDATE_THROTTLE_MS", "")
    s = Settings()
    assert s.max_reconnect_attempts == 5
    assert s.update_throttle_ms == 100
