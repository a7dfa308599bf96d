"""Tests for GPSR submission and moderation rules."""

from datetime import datetime, timezone

import pytest

from api.gpsr import apply_moderation, prepare_submission, slugify
from shared.types import ModerationStatus

NOW = datetime(2024, 6, 28, 12, 0, tzinfo=timezone.utc)


class TestSlugify:
    """Tests for slug generation."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Red Mug", "red-mug"),
            ("Red Mug (XL)!", "red-mug-xl"),
            ("  padded  name ", "padded-name"),
            ("already-slugged", "already-slugged"),
            ("double -- dash", "double-dash"),
            ("snake_case_name", "snake-case-name"),
            ("!!!", ""),
        ],
    )
    def test_slugify(self, name: str, expected: str) -> None:
        assert slugify(name) == expected


class TestPrepareSubmission:
    """Tests for prepare_submission."""

    def test_resets_moderation_state(self) -> None:
        """Every save goes back to pending with a fresh submission date."""
        values = {
            "name": "Kettle",
            "gpsr_moderation_status": ModerationStatus.approved,
        }
        prepared = prepare_submission(values, "supplier@example.com", now=NOW)

        assert prepared["gpsr_moderation_status"] == ModerationStatus.pending
        assert prepared["gpsr_last_submission_date"] == NOW
        assert prepared["gpsr_submitted_by_supplier_user"] == "supplier@example.com"
        assert prepared["name"] == "Kettle"

    def test_blank_text_fields_become_null(self) -> None:
        """Empty and whitespace-only strings are stored as NULL."""
        prepared = prepare_submission(
            {
                "gpsr_identification_details": "",
                "gpsr_warning_text": "   ",
                "gpsr_warning_phrases": "Keep away from children",
            },
            "s@example.com",
            now=NOW,
        )
        assert prepared["gpsr_identification_details"] is None
        assert prepared["gpsr_warning_text"] is None
        assert prepared["gpsr_warning_phrases"] == "Keep away from children"
        assert prepared["gpsr_online_instructions_url"] is None

    def test_lists_and_compliance_defaults(self) -> None:
        """Missing lists become empty and the compliance flag is a bool."""
        prepared = prepare_submission(
            {"gpsr_pictograms": None, "gpsr_statement_of_compliance": 1},
            "s@example.com",
            now=NOW,
        )
        assert prepared["gpsr_pictograms"] == []
        assert prepared["gpsr_certificates"] == []
        assert prepared["gpsr_statement_of_compliance"] is True

    def test_input_not_modified(self) -> None:
        values = {"gpsr_warning_text": ""}
        prepare_submission(values, "s@example.com", now=NOW)
        assert values == {"gpsr_warning_text": ""}

    def test_defaults_to_current_time(self) -> None:
        before = datetime.now(timezone.utc)
        prepared = prepare_submission({}, None)
        assert prepared["gpsr_last_submission_date"] >= before
        assert prepared["gpsr_submitted_by_supplier_user"] is None


class TestApplyModeration:
    """Tests for apply_moderation."""

    def test_approve(self) -> None:
        updates = apply_moderation(ModerationStatus.approved, now=NOW)
        assert updates == {
            "gpsr_moderation_status": ModerationStatus.approved,
            "gpsr_moderation_comment": None,
            "gpsr_last_moderation_date": NOW,
        }

    def test_reject_with_comment(self) -> None:
        updates = apply_moderation("rejected", "Missing CE declaration", now=NOW)
        assert updates["gpsr_moderation_status"] == ModerationStatus.rejected
        assert updates["gpsr_moderation_comment"] == "Missing CE declaration"

    def test_pending_is_not_a_decision(self) -> None:
        with pytest.raises(ValueError):
            apply_moderation(ModerationStatus.pending)

    def test_unknown_status(self) -> None:
        with pytest.raises(ValueError):
            apply_moderation("archived")
