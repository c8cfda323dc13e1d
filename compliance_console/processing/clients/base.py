"""
Base status query client interface.

Defines the contract that all processing-status clients must implement.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from compliance_console.processing.models import StatusSnapshot


class BaseStatusClient(ABC):
    """
    Abstract base class for processing-status clients.

    A client answers one question: what is the processing status of a
    transaction right now. It never retries on behalf of the caller
    unless explicitly configured to.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
        """
        self.base_url = base_url
        self.timeout = timeout

    @abstractmethod
    async def get_processing_status(
        self, transaction_id: Union[str, int]
    ) -> StatusSnapshot:
        """
        Fetch the current processing status of a transaction.

        Args:
            transaction_id: Transaction identifier

        Returns:
            Parsed status snapshot

        Raises:
            StatusConnectionError: If the API cannot be reached
            StatusAuthenticationError: If the API rejects our credentials
            StatusNotFoundError: If the transaction is unknown
            StatusAPIError: For any other error response
            StatusParseError: If the response cannot be parsed
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """
        Get the name of this status source.

        Returns:
            Source identifier (e.g., 'http', 'mock')
        """
        pass

    async def aclose(self) -> None:
        """Release any held connections."""
        return None


class StatusClientError(Exception):
    """Base exception for status client errors."""

    pass


class StatusConnectionError(StatusClientError):
    """Raised when the status API cannot be reached or times out."""

    pass


class StatusAuthenticationError(StatusClientError):
    """Raised when the status API rejects authentication."""

    pass


class StatusNotFoundError(StatusClientError):
    """Raised when the tracked transaction does not exist."""

    pass


class StatusAPIError(StatusClientError):
    """Raised for any other error response from the status API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StatusParseError(StatusClientError):
    """Raised when the status API returns a payload we cannot parse."""

    pass
