"""
Error taxonomy for the service registry.

Two families:

    RegistryError       request outcomes, each with the HTTP status the API
                        answers with (validation, not found, precondition,
                        internal, unavailable).

    StoreError          persistence failures raised by ServiceStore.
                        NoRowsError is the distinguishable "no such row"
                        signal; the registry decides per operation whether
                        that means not-found or precondition-failed.
"""

from __future__ import annotations

from typing import Optional


# ----------------------------------------------------------------------
# Request outcomes
# ----------------------------------------------------------------------

class RegistryError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistryError):
    """The caller sent something unusable. Retrying will not help."""

    status_code = 400


class NotFoundError(RegistryError):
    status_code = 404


class PreconditionFailedError(RegistryError):
    """
    The caller assumed a resource exists that was never created.

    Answered with 428 Precondition Required.
    """

    status_code = 428


class InternalError(RegistryError):
    """
    Store or transport failure. The caller may retry.

    The public message stays generic; the underlying error is chained.
    """

    status_code = 500

    def __init__(self, message: str = "internal error"):
        super().__init__(message)


class ServiceUnavailableError(RegistryError):
    status_code = 503


# ----------------------------------------------------------------------
# Store failures
# ----------------------------------------------------------------------

class StoreError(Exception):
    """
    A store operation failed.

    ``operation`` and ``identifier`` say what was being done to which
    record; the driver error is chained as ``__cause__``.
    """

    def __init__(self, operation: str, identifier: Optional[str] = None, detail: str = ""):
        self.operation = operation
        self.identifier = identifier
        msg = f"{operation} failed"
        if identifier is not None:
            msg += f" (id={identifier})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class NoRowsError(StoreError):
    def __init__(self, operation: str, identifier: Optional[str] = None):
        super().__init__(operation, identifier, "no rows")


def error_for_status(status_code: int, message: str) -> RegistryError:
    """
    Map an HTTP status back onto the taxonomy (used by the client).
    """
    for cls in (ValidationError, NotFoundError, PreconditionFailedError, ServiceUnavailableError):
        if cls.status_code == status_code:
            return cls(message)
    return InternalError(message)


__all__ = [
    "RegistryError",
    "ValidationError",
    "NotFoundError",
    "PreconditionFailedError",
    "InternalError",
    "ServiceUnavailableError",
    "StoreError",
    "NoRowsError",
    "error_for_status",
]
