"""
Centralized configuration management using Pydantic Settings
Built once at startup and passed explicitly to the components that need it

Every setting can come from a CLI flag, an environment variable
(SATISFACTORY_EXPORTER_<NAME>) or a .env file, in that order of priority.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, ValidationError, field_validator, model_validator
from typing import Optional, Tuple

from .exceptions import ConfigurationError

DEFAULT_REQUEST_TIMEOUT = 10.0
REQUEST_TIMEOUT_RATIO = 0.8
HEALTH_PATH = "/health"


def split_host_port(value: str) -> Tuple[str, int]:
    """Split 'host:port' (or '[v6]:port') into its parts"""
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port:
        raise ValueError(f"Expected host:port, got {value!r}")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid port in {value!r}")
    return host.strip("[]"), int(port)


class Settings(BaseSettings):
    """Exporter settings with environment variable support and validation"""

    # ========================================================================
    # Upstream Server
    # ========================================================================
    endpoint: str = Field(
        ...,
        description="Hostname and port of the server to query"
    )
    token: Optional[str] = Field(
        default=None,
        description="Bearer token used to authenticate against the server"
    )
    token_file: Optional[str] = Field(
        default=None,
        description="File containing the bearer token"
    )
    allow_insecure: bool = Field(
        default=False,
        description="Skip TLS certificate validation (self-signed servers)"
    )
    update_interval: int = Field(
        default=5,
        ge=1,
        le=3600,
        description="Interval in seconds between each query to the server"
    )
    request_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upstream request timeout in seconds, must be shorter than the update interval"
    )

    # ========================================================================
    # Exposition Server
    # ========================================================================
    listen: str = Field(
        default="127.0.0.1:3030",
        description="Address:port the metrics server listens on"
    )
    metrics_path: str = Field(
        default="/metrics",
        description="Path of the metrics endpoint"
    )

    # ========================================================================
    # Logging
    # ========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    json_logs: bool = Field(
        default=True,
        description="Emit JSON logs instead of console output"
    )

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Accept host[:port], optionally prefixed with https://"""
        v = v.strip().rstrip("/")
        if v.lower().startswith("https://"):
            v = v[len("https://"):]
        if "://" in v:
            raise ValueError(f"Only HTTPS endpoints are supported: {v}")
        if not v or "/" in v:
            raise ValueError(f"Expected host:port, got {v!r}")
        return v

    @field_validator("listen")
    @classmethod
    def validate_listen(cls, v: str) -> str:
        split_host_port(v)
        return v

    @field_validator("metrics_path")
    @classmethod
    def validate_metrics_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Metrics path must start with '/': {v}")
        if v.rstrip("/") == HEALTH_PATH:
            raise ValueError(f"Metrics path cannot be {HEALTH_PATH}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_token_source(self) -> "Settings":
        """Exactly one of token / token_file"""
        if self.token and self.token_file:
            raise ValueError("token and token_file are mutually exclusive")
        if not self.token and not self.token_file:
            raise ValueError("One of token or token_file is required")
        return self

    @model_validator(mode="after")
    def validate_request_timeout(self) -> "Settings":
        if self.request_timeout is not None and self.request_timeout >= self.update_interval:
            raise ValueError(
                f"request_timeout ({self.request_timeout}s) must be shorter than "
                f"update_interval ({self.update_interval}s)"
            )
        return self

    @property
    def listen_host(self) -> str:
        return split_host_port(self.listen)[0]

    @property
    def listen_port(self) -> int:
        return split_host_port(self.listen)[1]

    @property
    def upstream_url(self) -> str:
        return f"https://{self.endpoint}/api/v1"

    def get_effective_request_timeout(self) -> float:
        """Configured timeout, or a default strictly shorter than the interval"""
        if self.request_timeout is not None:
            return self.request_timeout
        return min(DEFAULT_REQUEST_TIMEOUT, self.update_interval * REQUEST_TIMEOUT_RATIO)

    class Config:
        """Pydantic configuration"""
        env_prefix = "SATISFACTORY_EXPORTER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


def load_settings(**overrides) -> Settings:
    """
    Build settings, turning validation failures into a ConfigurationError

    Args:
        overrides: Values that take priority over environment and .env

    Raises:
        ConfigurationError: If any setting is missing or invalid
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**overrides)
    except ValidationError as e:
        errors = e.errors()
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())) or 'settings'}: {err['msg']}"
            for err in errors
        )
        raise ConfigurationError(f"Invalid configuration: {messages}", field=field) from e
