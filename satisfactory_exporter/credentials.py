"""
Bearer token loading and upstream authentication settings

The token comes either as a literal value or from a file (for Docker or
Kubernetes secrets mounted into the container). Exactly one source is
allowed; Settings enforces that before we get here.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import structlog

from .config import Settings
from .exceptions import ConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthConfig:
    """Immutable upstream target and credentials"""
    endpoint: str
    token: str = field(repr=False)
    verify_tls: bool = True


def load_token_file(path: str) -> str:
    """
    Read a bearer token from a file

    Surrounding whitespace (trailing newline included) is stripped.

    Raises:
        ConfigurationError: If the file is missing, unreadable or empty
    """
    token_path = Path(path)
    if not token_path.is_file():
        raise ConfigurationError(f"Token file {path} does not exist", field="token_file")

    try:
        token = token_path.read_text().strip()
    except OSError as e:
        raise ConfigurationError(f"Failed to read token file {path}: {e}", field="token_file") from e

    if not token:
        raise ConfigurationError(f"Token file {path} is empty", field="token_file")

    logger.debug("token_loaded", source="file", path=str(token_path))
    return token


def resolve_token(token: Optional[str], token_file: Optional[str]) -> str:
    """Return the bearer token from whichever source was configured"""
    if token and token_file:
        raise ConfigurationError("token and token_file are mutually exclusive", field="token")
    if token_file:
        return load_token_file(token_file)
    if token and token.strip():
        logger.debug("token_loaded", source="value")
        return token.strip()
    raise ConfigurationError("One of token or token_file is required", field="token")


def build_auth_config(settings: Settings) -> AuthConfig:
    """Build the upstream auth config from validated settings"""
    return AuthConfig(
        endpoint=settings.endpoint,
        token=resolve_token(settings.token, settings.token_file),
        verify_tls=not settings.allow_insecure
    )
