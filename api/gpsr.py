"""GPSR (EU General Product Safety Regulation) submission rules.

Suppliers never set the moderation state themselves: every save of a
product puts it back in the moderation queue. Moderators then approve or
reject it.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from shared.types import ModerationStatus

# Free-text GPSR fields stored as NULL when left blank
TEXT_FIELDS = (
    "gpsr_identification_details",
    "gpsr_declarations_of_conformity",
    "gpsr_warning_phrases",
    "gpsr_warning_text",
    "gpsr_additional_safety_info",
    "gpsr_online_instructions_url",
)

LIST_FIELDS = ("gpsr_pictograms", "gpsr_certificates")

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_]+")
_DASHES = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    """URL slug for a product or category name: "Red Mug (XL)" -> "red-mug-xl"."""
    slug = _NON_WORD.sub("", name.lower())
    slug = _SEPARATORS.sub("-", slug)
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def prepare_submission(
    values: dict[str, Any],
    user_email: str | None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return product values ready to store as a fresh GPSR submission.

    Args:
        values: Product fields as submitted by the supplier.
        user_email: Email of the submitting user.
        now: Submission time (default: current UTC time).

    Returns:
        A new dict; `values` is not modified.
    """
    prepared = dict(values)

    for key in TEXT_FIELDS:
        value = prepared.get(key)
        prepared[key] = value if isinstance(value, str) and value.strip() else None

    for key in LIST_FIELDS:
        prepared[key] = list(prepared.get(key) or [])

    prepared["gpsr_statement_of_compliance"] = bool(
        prepared.get("gpsr_statement_of_compliance")
    )
    prepared["gpsr_moderation_status"] = ModerationStatus.pending
    prepared["gpsr_last_submission_date"] = now or datetime.now(timezone.utc)
    prepared["gpsr_submitted_by_supplier_user"] = user_email
    return prepared


def apply_moderation(
    status: ModerationStatus | str,
    comment: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Column updates recording a moderator's decision.

    Raises:
        ValueError: If `status` is not approved or rejected.
    """
    status = ModerationStatus(status)
    if status is ModerationStatus.pending:
        raise ValueError("Moderation decision must be approved or rejected")
    return {
        "gpsr_moderation_status": status,
        "gpsr_moderation_comment": comment or None,
        "gpsr_last_moderation_date": now or datetime.now(timezone.utc),
    }
