"""
Error taxonomy shared by the storage layer, services and routers.

Running out of items is not an error: the rotation engine reports it as an
AcquireResult with success=False.
"""

from typing import Optional


class RotationServiceError(Exception):
    """Base class for all application errors."""


class ConfigurationError(RotationServiceError):
    """Required connection parameters are missing. Fatal at startup."""


class NotConnected(RotationServiceError):
    """A store operation was attempted before connect() succeeded."""


class StorageOperationFailed(RotationServiceError):
    """The underlying driver rejected a query, insert, update or delete."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class UnknownCollection(RotationServiceError):
    """The requested collection is not one of the configured collections."""

    def __init__(self, name: str):
        super().__init__(f"Unknown collection: {name}")
        self.name = name


class GenerationUnavailable(RotationServiceError):
    """The event generator is not configured or the upstream call failed."""
