"""
Configuration loader with type-safe Pydantic models.
Loads and validates the JSON config file shared by all servers, plus
process-level settings taken from the environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bttk_mcp.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Relative location searched in every XDG config directory
CONFIG_RELATIVE_PATH = Path("bttk-mcp") / "config.json"

DEFAULT_CREDENTIALS_FILE = "credentials.json"
DEFAULT_TOKEN_FILE = "token.json"


class ObsidianConfig(BaseModel):
    """Connection settings for the Obsidian Local REST API."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(default="", description="Base URL, e.g. https://127.0.0.1:27124")
    cert: str = Field(default="", description="CA certificate (PEM); empty disables TLS verification")
    apikey: str = Field(default="", description="Bearer token shown in the plugin settings")


class GmailConfig(BaseModel):
    """Gmail OAuth file locations."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    credentials_file: str = DEFAULT_CREDENTIALS_FILE
    token_file: str = DEFAULT_TOKEN_FILE

    @field_validator("credentials_file", "token_file", mode="before")
    @classmethod
    def default_when_empty(cls, v, info):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CREDENTIALS_FILE if info.field_name == "credentials_file" else DEFAULT_TOKEN_FILE
        return v


class CalendarConfig(GmailConfig):
    """Google Calendar OAuth file locations and calendar allow-list."""

    calendars: List[str] = Field(
        default_factory=list,
        description="Calendar IDs tools may touch (empty allows every calendar)"
    )


class ToolsConfig(BaseModel):
    """MCP tool switches."""

    model_config = ConfigDict(extra="ignore")

    tools: Dict[str, bool] = Field(default_factory=dict)


class Config(BaseModel):
    """
    Root of config.json.

    Every section is optional so a single file can configure any subset of
    the servers.
    """

    model_config = ConfigDict(extra="ignore")

    obsidian: ObsidianConfig = Field(default_factory=ObsidianConfig)
    gmail: GmailConfig = Field(default_factory=GmailConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    mcp: ToolsConfig = Field(default_factory=ToolsConfig)

    def resolve_paths(self, config_dir: Path) -> "Config":
        """
        Make file references relative to the config file absolute.

        Args:
            config_dir: Directory holding the config file

        Returns:
            self, for chaining
        """
        def resolve(p: str) -> str:
            if not p or os.path.isabs(p):
                return p
            return str((config_dir / p).resolve())

        self.obsidian.cert = resolve(self.obsidian.cert)
        self.gmail.credentials_file = resolve(self.gmail.credentials_file)
        self.gmail.token_file = resolve(self.gmail.token_file)
        self.calendar.credentials_file = resolve(self.calendar.credentials_file)
        self.calendar.token_file = resolve(self.calendar.token_file)
        return self


class Settings(BaseSettings):
    """Process-level settings read from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="BTTK_MCP_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("logs"))
    file_logging: bool = Field(default=False)
    oauth_timeout_seconds: float = Field(default=300.0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()


def xdg_config_dirs() -> List[Path]:
    """Return XDG config directories in search order."""
    home = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    dirs = [Path(home)]
    for entry in (os.getenv("XDG_CONFIG_DIRS") or "/etc/xdg").split(os.pathsep):
        if entry:
            dirs.append(Path(entry))
    return dirs


def find_config_file() -> Path:
    """
    Locate config.json when no explicit path was given.

    Returns:
        Path of the first existing candidate

    Raises:
        ConfigurationError: If no candidate exists
    """
    candidates = [d / CONFIG_RELATIVE_PATH for d in xdg_config_dirs()]
    candidates.append(Path("config.json"))
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        "No config file found. Looked in: " + ", ".join(str(c) for c in candidates),
        config_key="path"
    )


def load_config(path: Optional[str] = None) -> Config:
    """
    Load and validate the JSON configuration.

    Args:
        path: Config file path; searched in XDG directories when empty

    Returns:
        Config with defaults applied and file paths made absolute

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    config_path = Path(path) if path else find_config_file()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Unable to read config {config_path}: {e}", config_key="path") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config {config_path}: {e}", config_key="path") from e

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {config_path}: {e}") from e

    logger.debug(f"Loaded config from {config_path}")
    return config.resolve_paths(config_path.resolve().parent)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the process-wide settings.

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a BTTK_MCP_* variable is invalid
    """
    global _settings

    if _settings is None:
        try:
            _settings = Settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid environment settings: {e}", config_key="env") from e
    return _settings


def reload_settings() -> Settings:
    """Reload settings from the environment."""
    global _settings
    _settings = None
    return get_settings()
