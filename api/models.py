"""SQLAlchemy models mirroring the hosted backend's catalog tables.

Used only in direct database mode; in REST mode the same tables are reached
through the backend's REST endpoint.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(Text)
    slug: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(Text)
    slug: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    photos: Mapped[list[str]] = mapped_column(JSON, default=list)
    files: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # GPSR compliance
    gpsr_identification_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_pictograms: Mapped[list[str]] = mapped_column(JSON, default=list)
    gpsr_declarations_of_conformity: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_certificates: Mapped[list[str]] = mapped_column(JSON, default=list)
    gpsr_moderation_status: Mapped[str] = mapped_column(String(16), default="pending")
    gpsr_moderation_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_last_submission_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    gpsr_last_moderation_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    gpsr_submitted_by_supplier_user: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_warning_phrases: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_warning_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_additional_safety_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    gpsr_statement_of_compliance: Mapped[bool] = mapped_column(Boolean, default=False)
    gpsr_online_instructions_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
