"""Abstract interface for outbound notification dispatchers."""
from abc import ABC, abstractmethod
from typing import Optional
from bumpdispatch.dispatch.models import Destination, NotificationPayload


class OutboundDispatcher(ABC):
    """Abstract base class for channel notification transports."""

    @property
    def is_configured(self) -> bool:
        """False when credentials are missing and nothing can be sent."""
        return True

    @abstractmethod
    async def send(self, destination: Destination, payload: NotificationPayload) -> str:
        """
        Post a new message to a destination.

        Args:
            destination: Target channel
            payload: Rendered notification

        Returns:
            Id of the created message

        Raises:
            DispatchError: If the message could not be delivered
        """
        pass

    @abstractmethod
    async def edit(self, destination: Destination, message_id: str, payload: NotificationPayload) -> None:
        """
        Replace the content of a previously sent message in place.

        Raises:
            DispatchError: If the message is gone or could not be edited
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass


class DispatchError(Exception):
    """Exception raised when a dispatch to one destination fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


__all__ = [
    "OutboundDispatcher",
    "DispatchError",
    "Destination",
    "NotificationPayload",
]
