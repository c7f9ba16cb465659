"""Resource client error hierarchy."""

from __future__ import annotations


class ResourceClientError(Exception):
    """Base class for every resource client failure."""


class ResourceConnectionError(ResourceClientError):
    """The client could not be constructed (missing or invalid API config).

    The affected operation is abandoned for this attempt; not counted as a
    query error.
    """


class ResourceQueryError(ResourceClientError):
    """A list or watch call reached the API and failed."""

    def __init__(self, kind: str, detail: str, status: int | None = None) -> None:
        super().__init__(f"{kind} query failed: {detail}")
        self.kind = kind
        self.detail = detail
        self.status = status
