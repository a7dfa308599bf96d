"""Shared type definitions for the catalog client and API.

These enums inherit from both `str` and `Enum` to ensure JSON serializability.
This allows `json.dumps(ModerationStatus.pending)` to work directly without
custom encoders, and lets the values travel unchanged to the hosted backend.
"""

from enum import Enum


class ModerationStatus(str, Enum):
    """GPSR moderation state of a product.

    Lifecycle: pending -> approved | rejected, back to pending on every
    supplier resubmission.
    """

    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AuthEvent(str, Enum):
    """Auth state changes emitted by the auth client."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class OAuthProvider(str, Enum):
    """Third-party identity providers enabled on the auth server."""

    google = "google"
    github = "github"
    facebook = "facebook"


class OtpType(str, Enum):
    """One-time token types accepted by the verify endpoint."""

    recovery = "recovery"
    signup = "signup"
    magiclink = "magiclink"
    email = "email"


class FileKind(str, Enum):
    """Kind of file attached to a product.

    - photo: product image, listed in `photos`
    - document: generic attachment, listed in `files`
    - gpsr_pictogram: safety pictogram, listed in `gpsr_pictograms`
    - gpsr_declaration: declaration of conformity (single file)
    - gpsr_certificate: conformity certificate, listed in `gpsr_certificates`
    """

    photo = "photo"
    document = "document"
    gpsr_pictogram = "gpsr_pictogram"
    gpsr_declaration = "gpsr_declaration"
    gpsr_certificate = "gpsr_certificate"
