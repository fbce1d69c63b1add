"""
Configuration management for spotifetch

This module handles loading, validation, and management of library settings
from YAML files and environment variables.

The configuration is organized into logical sections using dataclasses:
- Spotify application settings (credentials, scope, redirect port)
- Network behavior (timeouts, failure policy, reauthorization)
- Logging output
- Token cache storage

Sensitive data (client id and secret) should come from environment
variables or a .env file, while non-sensitive settings can live in YAML.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1/"
SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"

FAILURE_POLICIES = ("fail_fast", "best_effort")


@dataclass
class SpotifyConfig:
    """
    Spotify application credentials and authorization settings

    redirect_port is the port of the local callback listener; the redirect URI
    registered in the Spotify dashboard must be http://localhost:<port>/callback.
    """
    client_id: str = ""
    client_secret: str = ""
    auth_type: str = "app"  # app, user
    scope: str = "playlist-read-private user-library-read"
    redirect_port: int = 8008
    show_dialog: bool = True
    api_base_url: str = SPOTIFY_API_BASE_URL
    accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL


@dataclass
class NetworkConfig:
    """
    Network behavior for token exchanges and resource requests

    failure_policy decides what a failed page or batch request does to the
    aggregation around it: 'fail_fast' raises, 'best_effort' records the
    error and continues with an empty page.
    """
    request_timeout: int = 30
    callback_timeout: int = 300
    failure_policy: str = "fail_fast"
    reauthorize_on_401: bool = True
    interactive_fallback: bool = True
    user_agent: str = "spotifetch/1.0"


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class SecurityConfig:
    """
    Storage locations for persisted credentials

    The token cache is a flat JSON document; only the refresh token is
    written to it.
    """
    token_cache_path: str = "~/.spotifetch/cache.json"
    config_directory: str = "~/.spotifetch/"


class Settings:
    """
    Main settings class that manages all configuration

    Loads settings from a YAML file (first match wins), then overrides with
    environment variables, then ensures the configuration directory exists.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize settings from config file or environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".spotifetch"

        self.spotify = SpotifyConfig()
        self.network = NetworkConfig()
        self.logging = LoggingConfig()
        self.security = SecurityConfig()

        self._load_config()
        self._load_environment_variables()
        self._create_directories()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in multiple locations in order of
        precedence. The first file found will be used.
        """
        config_paths = [
            self.config_path,
            self.config_dir / "config.yaml",
            Path("spotifetch.yaml"),
            Path("config.yaml")
        ]

        config_data = {}
        for path in config_paths:
            if path and Path(path).exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except Exception as e:
                    print(f"Warning: Failed to load config from {path}: {e}")

        self._apply_config(config_data)

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only attributes that exist on the target dataclass are updated, so
        unknown keys in the YAML file are ignored.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = {
            'spotify': self.spotify,
            'network': self.network,
            'logging': self.logging,
            'security': self.security,
        }

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load sensitive configuration from environment variables

        Environment variables take precedence over file-based configuration.
        """
        env_mappings = {
            'SPOTIFY_CLIENT_ID': lambda v: setattr(self.spotify, 'client_id', v),
            'SPOTIFY_CLIENT_SECRET': lambda v: setattr(self.spotify, 'client_secret', v),
            'SPOTIFY_SCOPE': lambda v: setattr(self.spotify, 'scope', v),
            'SPOTIFETCH_CACHE_PATH': lambda v: setattr(self.security, 'token_cache_path', v),
            'SPOTIFETCH_LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
        }

        for env_var, setter in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                setter(value)

    def _create_directories(self) -> None:
        """
        Create the configuration directory if it does not exist

        Permission errors are reported as warnings; the library still works
        with an explicit token_cache_path elsewhere.
        """
        directory = Path(self.security.config_directory).expanduser()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            print(f"Warning: Failed to create directory {directory}: {e}")

    def get_config_directory(self) -> Path:
        """Get the expanded config directory path"""
        return Path(self.security.config_directory).expanduser()

    def get_token_cache_path(self) -> Path:
        """Get the expanded token cache path"""
        return Path(self.security.token_cache_path).expanduser()

    @property
    def redirect_uri(self) -> str:
        """Redirect URI the local callback listener answers on"""
        return f"http://localhost:{self.spotify.redirect_port}/callback"

    def validation_errors(self) -> List[str]:
        """
        Collect configuration problems

        Returns:
            List of human-readable error strings, empty when the settings are usable
        """
        errors = []

        if not self.spotify.client_id or not self.spotify.client_secret:
            errors.append("Spotify client_id and client_secret are required")

        if self.spotify.auth_type not in ('app', 'user'):
            errors.append(f"Invalid auth_type: {self.spotify.auth_type}")

        if not isinstance(self.spotify.redirect_port, int) or not 0 < self.spotify.redirect_port < 65536:
            errors.append(f"Invalid redirect_port: {self.spotify.redirect_port}")

        if self.network.failure_policy not in FAILURE_POLICIES:
            errors.append(f"Invalid failure_policy: {self.network.failure_policy}")

        if self.network.request_timeout <= 0 or self.network.callback_timeout <= 0:
            errors.append("Timeouts must be positive")

        return errors

    def __str__(self) -> str:
        sections = [
            f"Auth: {self.spotify.auth_type}",
            f"Redirect: {self.redirect_uri}",
            f"Policy: {self.network.failure_policy}",
            f"Cache: {self.security.token_cache_path}",
        ]
        return f"Settings({', '.join(sections)})"


# Global settings instance for singleton pattern
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance

    Returns:
        The global Settings instance
    """
    return settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global settings
    settings = Settings(config_path)
    return settings
