"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from labyrinth.services.serial.config import SerialConfig

logger = logging.getLogger(__name__)


class LeaderboardConfig(BaseModel):
    """Durable leaderboard table and ranking view."""

    file_name: str = "leaderboard.yaml"
    top_n: int = 10


class SessionConfig(BaseModel):
    """Run timing on the host."""

    tick_interval_seconds: float = 0.1
    # None keeps runs open until FINISH or concession
    run_timeout_seconds: float | None = None


class DeviceConfig(BaseModel):
    """Maze controller parameters, used by the device loop and simulator."""

    fall_threshold_cm: float = 5.0
    max_range_cm: float = 400.0
    joystick_min: int = 0
    joystick_max: int = 1023
    x_min_angle: float = 60.0
    x_max_angle: float = 120.0
    y_min_angle: float = 60.0
    y_max_angle: float = 120.0
    tick_interval_seconds: float = 0.02


class ApiConfig(BaseModel):
    """Dashboard API server."""

    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    debug: bool = False
    logfire_token: str = ""

    # Nested configuration sections
    serial: SerialConfig = Field(default_factory=SerialConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def leaderboard_path(self) -> Path:
        return self.data_dir / self.leaderboard.file_name

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m labyrinth init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["serial", "leaderboard", "session", "device", "api"]:
                if section_name in yaml_config and yaml_config[section_name]:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
