"""
Satisfactory Dedicated Server API Client
Queries the server state over the authenticated HTTPS API

One pooled httpx.AsyncClient per process. fetch() never retries: a failed
fetch raises a classified FetchError and the poller tries again on its next
tick.
"""
from typing import Optional
import httpx
import structlog
from pydantic import ValidationError

from .credentials import AuthConfig
from .exceptions import (
    UpstreamAuthenticationError,
    UpstreamResponseError,
    UpstreamTransportError,
)
from .models import QueryServerStateRequest, QueryServerStateResponse, ServerSnapshot

logger = structlog.get_logger(__name__)

API_PATH = "/api/v1"
AUTH_REJECTED_STATUSES = (401, 403)


def _describe_error_body(response: httpx.Response) -> str:
    """Best-effort summary of the server's {errorCode, errorMessage} body"""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        parts = [str(body[key]) for key in ("errorCode", "errorMessage") if body.get(key)]
        if parts:
            return ": ".join(parts)
    return response.reason_phrase or f"HTTP {response.status_code}"


class ServerApiClient:
    """
    Client for the dedicated server HTTPS API

    Usage:
        client = ServerApiClient(auth, timeout=4.0)
        await client.connect()
        snapshot = await client.fetch()
        await client.disconnect()
    """

    def __init__(
        self,
        auth: AuthConfig,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.auth = auth
        self.timeout = timeout
        self.base_url = f"https://{auth.endpoint}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self):
        """Create the connection pool"""
        if self._client is not None:
            return

        if not self.auth.verify_tls:
            logger.warning(
                "tls_verification_disabled",
                endpoint=self.auth.endpoint,
                reason="allow_insecure is set; server certificate will not be validated"
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.auth.token}"},
            verify=self.auth.verify_tls,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )
        logger.info("upstream_client_ready", endpoint=self.auth.endpoint, timeout_seconds=self.timeout)

    async def disconnect(self):
        """Close the connection pool"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("upstream_client_closed")

    async def __aenter__(self) -> "ServerApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def fetch(self) -> ServerSnapshot:
        """
        Query the current server state

        Returns:
            ServerSnapshot built from the serverGameState payload

        Raises:
            UpstreamTransportError: Connection, TLS, timeout or unexpected status
            UpstreamAuthenticationError: Server rejected the bearer token
            UpstreamResponseError: Payload does not match the expected shape
        """
        if self._client is None:
            raise UpstreamTransportError("Upstream client is not connected")

        try:
            response = await self._client.post(
                API_PATH,
                json=QueryServerStateRequest().model_dump()
            )
        except httpx.TimeoutException as e:
            raise UpstreamTransportError(
                f"Request to {self.auth.endpoint} timed out after {self.timeout}s ({type(e).__name__})"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamTransportError(
                f"Request to {self.auth.endpoint} failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code in AUTH_REJECTED_STATUSES:
            raise UpstreamAuthenticationError(
                f"Server rejected the bearer token ({response.status_code}): {_describe_error_body(response)}",
                status_code=response.status_code
            )

        if not response.is_success:
            raise UpstreamTransportError(
                f"Unexpected HTTP status {response.status_code}: {_describe_error_body(response)}",
                status_code=response.status_code
            )

        try:
            payload = QueryServerStateResponse.model_validate_json(response.content)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "body"
            raise UpstreamResponseError(
                f"Malformed QueryServerState response ({e.error_count()} error(s)); "
                f"{location}: {first['msg']}"
            ) from e

        return payload.data.server_game_state.to_snapshot()
