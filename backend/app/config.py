from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".tubetools"
ENVIRONMENTS: frozenset[str] = frozenset({"development", "production", "test"})
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{TUBETOOLS_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from a `TUBETOOLS_*` environment variable (or `.env`)
    and documents its default here.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBETOOLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Runtime mode and paths.
    environment: Literal["development", "production", "test"] = Field(
        default="production",
        description=(
            "Deployment environment. Error details are only exposed to HTTP clients "
            "in `development`."
        ),
    )
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs.",
    )

    # Client rate limiting.
    rate_limit_max_requests: int = Field(
        default=100,
        ge=1,
        description="Maximum API requests allowed per client in each window.",
    )
    rate_limit_window_seconds: int = Field(
        default=900,
        ge=1,
        description="Rate-limit window size in seconds.",
    )
    rate_limit_sweep_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="How often expired rate-limit entries are removed.",
    )

    # Upstream HTTP behavior.
    http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Deadline for oEmbed and health-probe requests.",
    )
    page_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Deadline for watch-page scrapes and transcript RPC calls.",
    )
    http_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first attempt for retriable upstream failures.",
    )
    http_backoff_base_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Base delay of the exponential retry backoff.",
    )
    http_backoff_max_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single retry delay.",
    )
    youtube_client_version: str = Field(
        default="2.20241215.01.00",
        description="`clientVersion` sent in the transcript RPC client context.",
    )
    youtube_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Browser-like User-Agent sent to YouTube.",
    )

    # HTTP surface.
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,https://localhost:3000",
        description="Comma-separated origins allowed by CORS on `/api/*` routes.",
    )
    transcript_cache_max_age_seconds: int = Field(
        default=3600,
        ge=0,
        description="`Cache-Control` max-age for transcript responses.",
    )
    video_info_cache_max_age_seconds: int = Field(
        default=7200,
        ge=0,
        description="`Cache-Control` max-age for video metadata responses.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for backend log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @property
    def expose_error_details(self) -> bool:
        return self.environment == "development"

    @property
    def allowed_origins(self) -> list[str]:
        return [
            origin.strip().rstrip("/")
            for origin in self.cors_allowed_origins.split(",")
            if origin.strip()
        ]

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBETOOLS_ENVIRONMENT must be a string.")
        normalized = value.strip().lower()
        if normalized in ENVIRONMENTS:
            return normalized
        raise ValueError("TUBETOOLS_ENVIRONMENT must be set to: development, production, test.")

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBETOOLS_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("TUBETOOLS_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("youtube_client_version", "youtube_user_agent", mode="before")
    @classmethod
    def _normalize_required_text(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"TUBETOOLS_{(info.field_name or '').upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
