"""Exceptions raised by CMS gateway implementations."""

from __future__ import annotations


class CmsError(RuntimeError):
    """Base class for CMS integration failures."""


class CmsRequestError(CmsError):
    """Raised when the CMS answered with an error or could not be reached.

    ``user_message`` is the human-readable message from the error payload,
    when the CMS sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.user_message = user_message


class UnsupportedOperationError(CmsError):
    """Raised when a gateway does not support an operation for a collection kind."""


__all__ = ["CmsError", "CmsRequestError", "UnsupportedOperationError"]
