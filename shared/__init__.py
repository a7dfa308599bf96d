"""Shared types and utilities for the catalog client and API."""

from .types import AuthEvent, FileKind, ModerationStatus, OAuthProvider, OtpType

__all__ = ["AuthEvent", "FileKind", "ModerationStatus", "OAuthProvider", "OtpType"]
