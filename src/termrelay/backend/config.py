"""Configuration management module"""
import os
from pathlib import Path
from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


def get_instance_path() -> Path:
    """Get the current instance path from environment or default"""
    instance_path = os.environ.get("TERMRELAY_INSTANCE_PATH")
    if instance_path:
        return Path(instance_path).expanduser()
    return Path.home() / ".termrelay"


def get_config_file() -> Path | None:
    """Get config file path if it exists"""
    config_file = get_instance_path() / "config.toml"
    if config_file.exists():
        return config_file
    return None


class Settings(BaseSettings):
    """Relay configuration settings"""

    # Server configuration
    server_host: str = "0.0.0.0"
    server_port: int = 3001

    # Authentication: empty token disables auth (development mode)
    auth_token: str = ""

    # Terminal defaults
    default_working_dir: str = str(Path.home())
    default_cols: int = 80
    default_rows: int = 24

    # tmux configuration
    tmux_binary: str = "tmux"
    tmux_socket_path: Path | None = Path.home() / ".tmux-sockets" / "termrelay"
    tmux_command_timeout: float = 5.0
    history_limit: int = 50000

    # Scrollback replay
    attach_scrollback_lines: int = 1000
    capture_scrollback_lines: int = 10000
    capture_max_bytes: int = 5 * 1024 * 1024

    # Stale session reaper
    session_ttl_hours: float = 24.0
    sweep_interval_minutes: float = 60.0

    # Backpressure (outstanding outbound bytes per connection)
    flow_high_water: int = 256 * 1024
    flow_low_water: int = 64 * 1024

    # CORS configuration
    cors_origins: list[str] = ["http://localhost:3000"]

    # Logging configuration
    log_dir: Path = Field(default_factory=lambda: get_instance_path() / "logs")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def check_water_marks(self) -> "Settings":
        """Low water must sit below high water or the pump never resumes"""
        if self.flow_low_water >= self.flow_high_water:
            raise ValueError(
                f"flow_low_water ({self.flow_low_water}) must be lower than "
                f"flow_high_water ({self.flow_high_water})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include the instance TOML file"""
        config_file = get_config_file()
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
