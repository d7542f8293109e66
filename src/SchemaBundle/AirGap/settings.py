# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.settings",
#   "purpose": "Configuration models, environment overrides, and settings resolution for bundle builds",
#   "sections": [
#     {"id": "defaults", "name": "Default Locations", "anchor": "DEF", "kind": "constants"},
#     {"id": "httpsettings", "name": "HttpSettings", "anchor": "class-httpsettings", "kind": "class"},
#     {"id": "retrysettings", "name": "RetrySettings", "anchor": "class-retrysettings", "kind": "class"},
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "buildsettings", "name": "BuildSettings", "anchor": "class-buildsettings", "kind": "class"},
#     {"id": "environmentoverrides", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "resolve-settings", "name": "resolve_settings", "anchor": "function-resolve-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the air-gapped bundle builder.

Settings are layered in three tiers: model defaults, ``SCHEMABUNDLE_*``
environment variables, and explicit overrides (normally CLI flags). All
models are frozen pydantic models so a resolved configuration can be shared
across worker threads without copying.

Example:
    >>> settings = resolve_settings(out="dist", concurrency=4)
    >>> settings.concurrency
    4
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import UserConfigError

__all__ = [
    "DEFAULT_CATALOG",
    "DEFAULT_OUT",
    "DEFAULT_SCHEMAS_DIR",
    "DEFAULT_LOCAL_DIR",
    "HttpSettings",
    "RetrySettings",
    "LoggingSettings",
    "BuildSettings",
    "EnvironmentOverrides",
    "resolve_settings",
]

# Project-relative defaults, resolved against the working directory.
DEFAULT_CATALOG = Path("src/api/json/catalog.json")
DEFAULT_OUT = Path("build")
DEFAULT_SCHEMAS_DIR = "schemas"
DEFAULT_LOCAL_DIR = Path("src/schemas/json")


class HttpSettings(BaseModel):
    """HTTP client settings used when downloading remote schemas."""

    model_config = ConfigDict(frozen=True)

    timeout_connect: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Connect timeout in seconds",
    )
    timeout_read: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        description="Read timeout in seconds",
    )
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    user_agent: str = Field(
        default="SchemaBundle/AirGap (+https://www.schemastore.org)",
        description="User-Agent header value",
    )


class RetrySettings(BaseModel):
    """Retry policy for schema downloads."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        default=4,
        ge=1,
        le=50,
        description="Total attempts per download, including the first",
    )
    base_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=600_000,
        description="Delay before the first retry; doubles on each further retry",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for JSON-lines log files; console only when unset",
    )
    retention_days: int = Field(default=30, ge=1, le=3650)
    max_log_size_mb: float = Field(default=5.0, gt=0.0)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class BuildSettings(BaseModel):
    """Fully resolved configuration for a single bundle build."""

    model_config = ConfigDict(frozen=True)

    catalog: Path = Field(default=DEFAULT_CATALOG, description="Source catalog document")
    out: Path = Field(default=DEFAULT_OUT, description="Output bundle directory")
    schemas_dir: str = Field(
        default=DEFAULT_SCHEMAS_DIR,
        description="Name of the schemas subdirectory inside the bundle",
    )
    local_dir: Optional[Path] = Field(
        default=DEFAULT_LOCAL_DIR,
        description="Directory of canonical schemas consulted before downloading",
    )
    concurrency: int = Field(default=10, ge=1, le=256, description="Maximum in-flight fetches")
    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("schemas_dir")
    @classmethod
    def validate_schemas_dir(cls, v: str) -> str:
        """Require a single relative path component."""
        value = v.strip()
        if not value or value in {".", ".."} or "/" in value or "\\" in value:
            raise ValueError(f"schemas_dir must be a single directory name, got '{v}'")
        return value

    @property
    def schemas_path(self) -> Path:
        """Absolute-or-relative path of the schemas subdirectory."""
        return self.out / self.schemas_dir

    @property
    def catalog_output_path(self) -> Path:
        """Path of the rewritten catalog inside the bundle."""
        return self.out / "catalog.json"


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    catalog: Optional[Path] = Field(default=None, alias="SCHEMABUNDLE_CATALOG")
    out: Optional[Path] = Field(default=None, alias="SCHEMABUNDLE_OUT")
    schemas_dir: Optional[str] = Field(default=None, alias="SCHEMABUNDLE_SCHEMAS_DIR")
    local_dir: Optional[Path] = Field(default=None, alias="SCHEMABUNDLE_LOCAL_DIR")
    concurrency: Optional[int] = Field(default=None, alias="SCHEMABUNDLE_CONCURRENCY")
    max_attempts: Optional[int] = Field(default=None, alias="SCHEMABUNDLE_MAX_ATTEMPTS")
    base_delay_ms: Optional[int] = Field(default=None, alias="SCHEMABUNDLE_BASE_DELAY_MS")
    log_level: Optional[str] = Field(default=None, alias="SCHEMABUNDLE_LOG_LEVEL")
    log_dir: Optional[Path] = Field(default=None, alias="SCHEMABUNDLE_LOG_DIR")

    model_config = SettingsConfigDict(
        env_prefix="SCHEMABUNDLE_", case_sensitive=False, extra="ignore"
    )


_TOP_LEVEL_KEYS = ("catalog", "out", "schemas_dir", "local_dir", "concurrency")
_RETRY_KEYS = ("max_attempts", "base_delay_ms")


def _merge_layer(target: Dict[str, Any], layer: Dict[str, Any]) -> None:
    for key in _TOP_LEVEL_KEYS:
        if layer.get(key) is not None:
            target[key] = layer[key]
    for key in _RETRY_KEYS:
        if layer.get(key) is not None:
            target.setdefault("retry", {})[key] = layer[key]
    if layer.get("log_level") is not None:
        target.setdefault("logging", {})["level"] = layer["log_level"]
    if layer.get("log_dir") is not None:
        target.setdefault("logging", {})["log_dir"] = layer["log_dir"]


def resolve_settings(*, use_env: bool = True, **overrides: Any) -> BuildSettings:
    """Merge defaults, environment variables, and explicit overrides.

    Args:
        use_env: When ``False``, ignore ``SCHEMABUNDLE_*`` environment variables.
        **overrides: Keyword overrides such as ``catalog``, ``out``,
            ``schemas_dir``, ``local_dir``, ``concurrency``, ``max_attempts``,
            ``base_delay_ms``, ``log_level`` and ``log_dir``. ``None`` values
            are ignored so CLI options can be forwarded verbatim.

    Returns:
        Frozen :class:`BuildSettings` instance.

    Raises:
        UserConfigError: If any merged value fails validation.
    """

    payload: Dict[str, Any] = {}
    try:
        if use_env:
            _merge_layer(payload, EnvironmentOverrides().model_dump(exclude_none=True))
        _merge_layer(payload, overrides)
        return BuildSettings.model_validate(payload)
    except ValidationError as exc:
        raise UserConfigError(f"Invalid configuration: {exc}") from exc
