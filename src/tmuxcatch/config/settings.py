"""Configuration management for tmuxcatch.

Loads settings from a YAML configuration file with environment variable
overrides (``TMUXCATCH_`` prefix, ``__`` between nested keys). Supports
.env files. Command-line flags are applied on top by the CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/tmuxcatch.yaml")


class ListenerConfig(BaseModel):
    host: str = Field(default="127.0.0.1", description="Interface address on which to bind")
    port: int = Field(default=8443, ge=0, le=65535, description="0 binds any free port")
    keys_dir: Path = Field(default=Path("./certs"), description="Folder holding the TLS key pair")
    cert_file: str = Field(default="server.pem")
    key_file: str = Field(default="server.key")

    @property
    def cert_path(self) -> Path:
        return self.keys_dir / self.cert_file

    @property
    def key_path(self) -> Path:
        return self.keys_dir / self.key_file


class RendezvousConfig(BaseModel):
    state_dir: Path = Field(default=Path(".state"), description="Where rendezvous sockets live")
    handshake_timeout: float | None = Field(default=30.0, gt=0)
    dial_grace: float = Field(default=0.1, ge=0)
    dial_attempts: int = Field(default=10, gt=0)
    dial_interval: float = Field(default=0.1, gt=0)
    dial_backoff: float = Field(default=2.0, ge=1.0)
    dial_max_interval: float = Field(default=2.0, gt=0)
    close_timeout: float = Field(default=1.0, gt=0)


class TmuxConfig(BaseModel):
    binary: str = Field(default="tmux")
    socket_path: str | None = Field(default=None, description="Passed to tmux as -S")
    bell: bool = Field(default=True, description="Ring the bell in every new pane")


class BridgeConfig(BaseModel):
    tty_path: str = Field(default="/dev/tty")
    raw_mode: bool = Field(default=False)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for tmuxcatch.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "TMUXCATCH_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    rendezvous: RendezvousConfig = Field(default_factory=RendezvousConfig)
    tmux: TmuxConfig = Field(default_factory=TmuxConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML data arrives as init kwargs; the environment must win over it.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    elif config_path:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
