"""Configuration management module for Waypoint.

This module handles loading and validating router configuration from:
- Configuration files (YAML)
- Environment variables

Route tables in configuration refer to guards and middleware by name; the
names are resolved against the instances handed to ``Router.from_config``.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from waypoint.core.exceptions import InvalidRouteConfigError
from waypoint.core.parser import normalize_path, validate_pattern


class RouteConfig(BaseModel):
    """Route configuration."""

    pattern: str = Field(description="Route pattern, e.g. /app/user/:id")
    name: str | None = Field(default=None, description="Route name (defaults to the pattern)")
    parent: str | None = Field(default=None, description="Pattern of the enclosing shell route")
    is_shell: bool = Field(default=False, description="Whether the route hosts a nested navigator")
    is_initial: bool = Field(default=False, description="Whether this is the initial route")
    fullscreen_dialog: bool = Field(default=False, description="Present the page as a dialog")
    maintain_state: bool = Field(default=True, description="Keep the page state when covered")
    transition_key: str | None = Field(default=None, description="Named page transition")
    guards: list[str] = Field(default_factory=list, description="Names of route guards")
    middleware: list[str] = Field(default_factory=list, description="Names of route middleware")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form route metadata")

    @field_validator("pattern")
    @classmethod
    def validate_route_pattern(cls, v: str) -> str:
        """Normalize the pattern and reject repeated parameter names."""
        try:
            return validate_pattern(v)
        except InvalidRouteConfigError as e:
            raise ValueError(e.message) from e

    @field_validator("parent")
    @classmethod
    def normalize_parent(cls, v: str | None) -> str | None:
        """Normalize the parent pattern."""
        return normalize_path(v) if v else None


class RedirectConfig(BaseModel):
    """Redirect rule configuration."""

    model_config = ConfigDict(populate_by_name=True)

    from_pattern: str = Field(alias="from", description="Pattern to redirect from")
    to_pattern: str = Field(alias="to", description="Pattern to redirect to")
    permanent: bool = Field(default=False, description="Whether the redirect is permanent")

    @field_validator("from_pattern", "to_pattern")
    @classmethod
    def validate_redirect_pattern(cls, v: str) -> str:
        """Normalize redirect patterns."""
        try:
            return validate_pattern(v)
        except InvalidRouteConfigError as e:
            raise ValueError(e.message) from e


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json or text)")
    output: str = Field(default="stdout", description="Log output (stdout, stderr or file path)")
    redact_fields: list[str] = Field(
        default_factory=lambda: ["password", "token", "secret", "authorization"],
        description="Field names to redact from structured logs",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is valid."""
        valid_formats = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = Field(default=True, description="Enable navigation metrics")
    namespace: str = Field(default="waypoint", description="Prefix for metric names")


class RouterConfig(BaseModel):
    """Main router configuration."""

    environment: str = Field(default="development", description="Environment name")
    initial_path: str = Field(default="/", description="Path navigated to on start")
    history_max_size: int = Field(default=100, ge=1, description="Maximum history entries")
    max_redirect_depth: int = Field(
        default=8, ge=1, description="Maximum redirect hops per navigation"
    )
    debug_log: bool = Field(default=False, description="Log every pipeline step at DEBUG")
    default_transition: str | None = Field(
        default=None, description="Transition used when neither call nor route sets one"
    )
    routes: list[RouteConfig] = Field(default_factory=list)
    redirects: list[RedirectConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("initial_path")
    @classmethod
    def normalize_initial_path(cls, v: str) -> str:
        """Normalize the initial path, keeping any query string."""
        path, sep, query = v.partition("?")
        return normalize_path(path) + sep + query

    @model_validator(mode="after")
    def validate_unique_patterns(self) -> "RouterConfig":
        """Reject route tables that declare a pattern twice."""
        seen: set[str] = set()
        for route in self.routes:
            if route.pattern in seen:
                raise ValueError(f"Duplicate route pattern: {route.pattern}")
            seen.add(route.pattern)
        return self


class ConfigLoader:
    """Loads and validates configuration from multiple sources."""

    def __init__(self, config_path: str | None = None):
        """Initialize the configuration loader.

        Args:
            config_path: Path to configuration file. If None, uses environment variable
                        WAYPOINT_CONFIG_PATH or defaults to config/waypoint.yaml
        """
        self.config_path = self._resolve_config_path(config_path)

    def _resolve_config_path(self, config_path: str | None) -> Path:
        """Resolve configuration file path."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("WAYPOINT_CONFIG_PATH")
        if env_path:
            return Path(env_path)

        # Try environment-specific config first
        env = os.getenv("WAYPOINT_ENV", "development")
        env_specific = Path(f"config/waypoint.{env}.yaml")
        if env_specific.exists():
            return env_specific

        return Path("config/waypoint.yaml")

    def load(self) -> RouterConfig:
        """Load and validate configuration.

        Returns:
            Validated RouterConfig instance

        Raises:
            ValueError: If configuration is invalid
        """
        config_dict = self._load_from_file()
        config_dict = self._override_from_env(config_dict)

        try:
            config = RouterConfig(**config_dict)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return config

    def _load_from_file(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            # Missing file means defaults
            return {}

        with open(self.config_path) as f:
            config_dict = yaml.safe_load(f) or {}

        return config_dict

    def _override_from_env(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Override configuration with environment variables.

        Environment variables follow the pattern: WAYPOINT_<KEY>
        For example: WAYPOINT_MAX_REDIRECT_DEPTH=4
        """
        # Router config
        if initial_path := os.getenv("WAYPOINT_INITIAL_PATH"):
            config_dict["initial_path"] = initial_path
        if history_size := os.getenv("WAYPOINT_HISTORY_MAX_SIZE"):
            config_dict["history_max_size"] = int(history_size)
        if redirect_depth := os.getenv("WAYPOINT_MAX_REDIRECT_DEPTH"):
            config_dict["max_redirect_depth"] = int(redirect_depth)
        if debug_log := os.getenv("WAYPOINT_DEBUG_LOG"):
            config_dict["debug_log"] = debug_log.lower() == "true"

        # Logging config
        if log_level := os.getenv("WAYPOINT_LOG_LEVEL"):
            config_dict.setdefault("logging", {})["level"] = log_level
        if log_format := os.getenv("WAYPOINT_LOG_FORMAT"):
            config_dict.setdefault("logging", {})["format"] = log_format

        # Metrics config
        if metrics_enabled := os.getenv("WAYPOINT_METRICS_ENABLED"):
            config_dict.setdefault("metrics", {})["enabled"] = metrics_enabled.lower() == "true"

        # Environment
        if env := os.getenv("WAYPOINT_ENV"):
            config_dict["environment"] = env

        return config_dict


def load_config(config_path: str | None = None) -> RouterConfig:
    """Load configuration (convenience function).

    Args:
        config_path: Optional path to configuration file

    Returns:
        Validated RouterConfig instance
    """
    loader = ConfigLoader(config_path)
    return loader.load()
