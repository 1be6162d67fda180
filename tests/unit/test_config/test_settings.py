"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from tmuxcatch.config.settings import (
    ListenerConfig,
    RendezvousConfig,
    Settings,
    load_settings,
)


class TestSettings:
    def test_default_settings(self) -> None:
        settings = Settings()
        assert settings.listener.host == "127.0.0.1"
        assert settings.listener.port == 8443
        assert settings.rendezvous.state_dir == Path(".state")
        assert settings.tmux.binary == "tmux"
        assert settings.bridge.raw_mode is False

    def test_listener_key_paths(self) -> None:
        config = ListenerConfig(keys_dir=Path("/etc/catch"))
        assert config.cert_path == Path("/etc/catch/server.pem")
        assert config.key_path == Path("/etc/catch/server.key")

    def test_port_zero_binds_any_free_port(self) -> None:
        assert ListenerConfig(port=0).port == 0

    def test_invalid_port(self) -> None:
        with pytest.raises(ValidationError):
            ListenerConfig(port=70000)

    def test_invalid_dial_attempts(self) -> None:
        with pytest.raises(ValidationError):
            RendezvousConfig(dial_attempts=0)

    def test_load_settings_missing_file(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.listener.port == 8443

    def test_load_settings_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "tmuxcatch.yaml"
        path.write_text(
            "listener:\n"
            "  port: 9443\n"
            "rendezvous:\n"
            "  handshake_timeout: null\n"
            "tmux:\n"
            "  socket_path: /tmp/catch\n"
        )
        settings = load_settings(path)
        assert settings.listener.port == 9443
        assert settings.rendezvous.handshake_timeout is None
        assert settings.tmux.socket_path == "/tmp/catch"

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "tmuxcatch.yaml"
        path.write_text("listener:\n  port: 9443\n")
        monkeypatch.setenv("TMUXCATCH_LISTENER__PORT", "10443")
        settings = load_settings(path)
        assert settings.listener.port == 10443
