"""Pydantic schemas for API request/response validation.

Record schemas (`Category`, `Product`) validate rows coming from either
store: REST rows arrive as JSON dicts, SQL rows as ORM objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from shared.types import FileKind, ModerationStatus


# =============================================================================
# Catalog records (store -> API)
# =============================================================================


class Category(BaseModel):
    """A row of the categories table."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    name: str
    slug: str | None = None
    description: str | None = None
    parent_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryNode(Category):
    """Category with its subtree, as rendered in the category list."""

    level: int = 0
    product_count: int = 0
    children: list[CategoryNode] = []


class CategoryOption(BaseModel):
    """Flattened tree entry for parent pickers; `label` is indented by level."""

    id: UUID
    name: str
    level: int
    label: str


class CategoryDetail(BaseModel):
    """Category being edited plus the categories allowed as its parent."""

    category: Category
    parents: list[Category]
    path: list[Category]


class FileRef(BaseModel):
    """Document attached to a product (`files` column)."""

    url: str
    name: str = ""
    type: str = "application/octet-stream"


class Product(BaseModel):
    """A row of the products table."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    name: str
    slug: str | None = None
    description: str | None = None
    price: float = 0
    category_id: UUID | None = None
    photos: list[str] = []
    files: list[FileRef] = []

    gpsr_identification_details: str | None = None
    gpsr_pictograms: list[str] = []
    gpsr_declarations_of_conformity: str | None = None
    gpsr_certificates: list[str] = []
    gpsr_moderation_status: ModerationStatus = ModerationStatus.pending
    gpsr_moderation_comment: str | None = None
    gpsr_last_submission_date: datetime | None = None
    gpsr_last_moderation_date: datetime | None = None
    gpsr_submitted_by_supplier_user: str | None = None
    gpsr_warning_phrases: str | None = None
    gpsr_warning_text: str | None = None
    gpsr_additional_safety_info: str | None = None
    gpsr_statement_of_compliance: bool = False
    gpsr_online_instructions_url: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductDetail(Product):
    """Product plus the name of its category."""

    category_name: str = ""


class Page(BaseModel):
    """One page of products, newest first."""

    items: list[Product]
    total: int
    page: int
    page_size: int
    page_count: int


# =============================================================================
# Catalog requests (client -> API)
# =============================================================================


class CategoryIn(BaseModel):
    """Create or replace a category."""

    name: str = Field(min_length=1, max_length=100)
    parent_id: UUID | None = None
    description: str | None = Field(default=None, max_length=1000)
    slug: str | None = Field(default=None, max_length=100)


class GpsrFields(BaseModel):
    """GPSR compliance data submitted with a product.

    The warning/safety fields also accept the camelCase names older clients
    send.
    """

    model_config = ConfigDict(populate_by_name=True)

    gpsr_identification_details: str | None = None
    gpsr_pictograms: list[str] = []
    gpsr_declarations_of_conformity: str | None = None
    gpsr_certificates: list[str] = []
    gpsr_warning_phrases: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gpsr_warning_phrases", "gpsrWarningPhrases"),
    )
    gpsr_warning_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gpsr_warning_text", "gpsrWarningText"),
    )
    gpsr_additional_safety_info: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "gpsr_additional_safety_info", "gpsrAdditionalSafetyInfo"
        ),
    )
    gpsr_statement_of_compliance: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "gpsr_statement_of_compliance", "gpsrStatementOfCompliance"
        ),
    )
    gpsr_online_instructions_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "gpsr_online_instructions_url", "gpsrOnlineInstructionsUrl"
        ),
    )


class ProductIn(GpsrFields):
    """Create or replace a product."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    price: float = Field(default=0, ge=0, le=1_000_000)
    category_id: UUID | None = None
    slug: str | None = Field(default=None, max_length=200)
    photos: list[str] = []
    files: list[FileRef] = []


class ModerationIn(BaseModel):
    """Moderator decision; only approved or rejected are accepted."""

    status: ModerationStatus
    comment: str | None = None


class UploadedFile(BaseModel):
    """Object stored for a product."""

    kind: FileKind
    url: str
    path: str
    name: str
    type: str


# =============================================================================
# Auth
# =============================================================================


class Credentials(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class SignUpIn(Credentials):
    data: dict[str, Any] | None = None


class EmailIn(BaseModel):
    email: str = Field(min_length=3)


class TokenIn(BaseModel):
    token: str = Field(min_length=1)


class UpdatePasswordIn(BaseModel):
    """New password, optionally with the recovery link it came from.

    `token` (or a full `link`) is required unless the user is signed in.
    """

    password: str = Field(min_length=6)
    confirm_password: str
    token: str | None = None
    link: str | None = None


class UpdateUserIn(BaseModel):
    email: str | None = None
    password: str | None = None
    data: dict[str, Any] | None = None


class Account(BaseModel):
    """The signed-in user as the auth server reports it."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class AuthOut(BaseModel):
    """Result of an auth operation."""

    authenticated: bool
    user: Account | None = None
    email_confirmed: bool = False
    message: str | None = None
    redirect: str | None = None
    url: str | None = None
