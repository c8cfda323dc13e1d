"""
REST API status client.

Queries ``GET {base_url}/Transactions/{id}/processing-status`` on the
back-office API using httpx and parses the payload into a
``StatusSnapshot``.
"""

from typing import Optional, Union
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from compliance_console.processing.clients.base import (
    BaseStatusClient,
    StatusAPIError,
    StatusAuthenticationError,
    StatusConnectionError,
    StatusNotFoundError,
    StatusParseError,
)
from compliance_console.processing.config import RetryConfig
from compliance_console.processing.models import StatusSnapshot
from compliance_console.processing.retry import retry_with_backoff

logger = structlog.get_logger()

STATUS_PATH = "Transactions/{transaction_id}/processing-status"


def _path_segment(transaction_id: Union[str, int]) -> str:
    """Encode the id as exactly one path segment."""
    segment = quote(str(transaction_id).strip(), safe="")
    if segment in (".", ".."):
        segment = segment.replace(".", "%2E")
    return segment


class HttpStatusClient(BaseStatusClient):
    """Status client backed by the back-office REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the API (e.g. ``https://host/api``)
            timeout: Request timeout in seconds
            token: Optional bearer token
            retry: Transport-level retry policy (defaults to a single attempt)
            transport: Optional httpx transport, used by tests
        """
        super().__init__(base_url, timeout)
        self.retry = retry or RetryConfig()

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def get_source_name(self) -> str:
        return "http"

    async def get_processing_status(
        self, transaction_id: Union[str, int]
    ) -> StatusSnapshot:
        path = STATUS_PATH.format(transaction_id=_path_segment(transaction_id))

        async def fetch() -> StatusSnapshot:
            return await self._fetch(path)

        return await retry_with_backoff(
            fetch,
            self.retry,
            operation_name="get_processing_status",
            retry_on=(StatusConnectionError,),
        )

    async def _fetch(self, path: str) -> StatusSnapshot:
        try:
            response = await self._client.get(path)
        except httpx.TimeoutException as e:
            raise StatusConnectionError(
                f"Status request timed out after {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise StatusConnectionError(f"Status API unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise StatusAuthenticationError(
                f"Status API rejected credentials ({response.status_code})"
            )
        if response.status_code == 404:
            raise StatusNotFoundError(f"Transaction not found: {path}")
        if response.status_code >= 400:
            raise StatusAPIError(
                f"Status API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise StatusParseError("Status API returned a non-JSON response") from e

        try:
            snapshot = StatusSnapshot.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "status_client.parse_failed",
                path=path,
                errors=e.error_count(),
            )
            raise StatusParseError(f"Invalid processing status payload: {e}") from e

        logger.debug(
            "status_client.fetched",
            path=path,
            state=snapshot.processing_state.label,
            matched=snapshot.matched_count,
        )
        return snapshot

    async def aclose(self) -> None:
        await self._client.aclose()
