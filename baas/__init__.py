"""Client for the hosted backend: auth, relational tables and object storage."""

from .client import client_options, create_client
from .config import BaasConfig, load_config
from .errors import BACKEND_ERRORS, BackendFailure, describe
from .session import (
    AuthPolicy,
    AuthResponse,
    Location,
    RecoveryLink,
    Redirect,
    SessionManager,
    parse_recovery_link,
    recovery_error_message,
)

__all__ = [
    # Client
    "client_options",
    "create_client",
    # Configuration
    "BaasConfig",
    "load_config",
    # Session lifecycle
    "AuthPolicy",
    "AuthResponse",
    "Location",
    "RecoveryLink",
    "Redirect",
    "SessionManager",
    "parse_recovery_link",
    "recovery_error_message",
    # Errors
    "BACKEND_ERRORS",
    "BackendFailure",
    "describe",
]
