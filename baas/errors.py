"""Uniform view of the errors raised by the backend client.

The auth, relational REST and storage clients each raise their own
exception type with its own attributes. `describe` reduces them to a
message, an HTTP status (when one is known) and a service error code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from supabase import PostgrestAPIError, StorageException
from supabase_auth.errors import AuthError

BACKEND_ERRORS: tuple[type[Exception], ...] = (AuthError, PostgrestAPIError, StorageException)

# PostgREST and Postgres error codes with an obvious HTTP meaning
QUERY_STATUS = {
    "PGRST116": 404,
    "PGRST301": 401,
    "PGRST302": 401,
    "42501": 403,
    "23503": 409,
    "23505": 409,
    "22P02": 400,
}


@dataclass
class BackendFailure:
    """What went wrong in a backend call.

    Attributes:
        message: Human readable message from the service.
        status: HTTP status code, if the service reported one.
        code: Service specific error code (e.g. `otp_expired`, `PGRST116`).
    """

    message: str
    status: int | None = None
    code: str | None = None


def _status(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def describe(error: Exception) -> BackendFailure:
    """Reduce a backend client exception to a `BackendFailure`."""
    if isinstance(error, AuthError):
        return BackendFailure(
            message=error.message,
            status=_status(getattr(error, "status", None)),
            code=error.code,
        )

    if isinstance(error, PostgrestAPIError):
        code = str(error.code) if error.code else None
        return BackendFailure(
            message=error.message or "Query failed",
            status=QUERY_STATUS.get(code or ""),
            code=code,
        )

    # Storage errors carry attributes on newer clients, a dict on older ones
    body = error.args[0] if error.args and isinstance(error.args[0], dict) else {}
    message = getattr(error, "message", None) or body.get("message") or str(error)
    status = getattr(error, "status", None) or body.get("statusCode")
    code = getattr(error, "code", None) or body.get("error")
    return BackendFailure(message=str(message), status=_status(status), code=code)
