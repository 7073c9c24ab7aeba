"""Error taxonomy shared by the catalog clients and the request coordinator."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for failures talking to the media catalog."""


class CancellationError(CatalogError):
    """Raised when a request is abandoned because its token was cancelled."""


class TransportError(CatalogError):
    """Network or HTTP level failure while fetching a resource."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(CatalogError):
    """The catalog answered with a body that could not be decoded."""
