"""Catalog persistence.

Two implementations share the `CatalogStore` protocol:

* `RestCatalogStore` talks to the hosted backend's REST endpoint with the
  signed-in user's token, so row-level security applies on the server.
* `SqlCatalogStore` talks to the database directly through SQLAlchemy.

Both scope every query to one user (a store without a user, used for
moderation, sees every row). A row that does not exist and a row owned by
someone else look the same to callers: `None` (or `False` for deletes).
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from supabase import AsyncClient

from . import models
from .schemas import Category, Page, Product

logger = logging.getLogger(__name__)

CATEGORIES_TABLE = "categories"
PRODUCTS_TABLE = "products"


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size)) if page_size > 0 else 1


class CatalogStore(Protocol):
    """Per-user access to categories and products."""

    user_id: str | None

    async def list_categories(self) -> list[Category]: ...

    async def get_category(self, category_id: UUID) -> Category | None: ...

    async def create_category(self, values: dict[str, Any]) -> Category: ...

    async def update_category(
        self, category_id: UUID, values: dict[str, Any]
    ) -> Category | None: ...

    async def delete_category(self, category_id: UUID) -> bool: ...

    async def count_products(self, category_id: UUID) -> int: ...

    async def count_products_by_category(self) -> dict[UUID, int]: ...

    async def list_products(self, page: int = 1, page_size: int = 20) -> Page: ...

    async def get_product(self, product_id: UUID) -> Product | None: ...

    async def create_product(self, values: dict[str, Any]) -> Product: ...

    async def update_product(
        self, product_id: UUID, values: dict[str, Any]
    ) -> Product | None: ...

    async def delete_product(self, product_id: UUID) -> Product | None: ...


# =============================================================================
# Direct database
# =============================================================================


class SqlCatalogStore:
    """Catalog store on an `AsyncSession`. Each write commits."""

    def __init__(self, session: AsyncSession, user_id: str | None) -> None:
        self.session = session
        self.user_id = user_id

    def _owner(self, model: type[models.Category] | type[models.Product]) -> list[Any]:
        """Ownership filter; none when the store is not bound to a user."""
        return [] if self.user_id is None else [model.user_id == self.user_id]

    async def _category_row(self, category_id: UUID) -> models.Category | None:
        result = await self.session.execute(
            select(models.Category).where(
                models.Category.id == category_id,
                *self._owner(models.Category),
            )
        )
        return result.scalar_one_or_none()

    async def _product_row(self, product_id: UUID) -> models.Product | None:
        result = await self.session.execute(
            select(models.Product).where(
                models.Product.id == product_id,
                *self._owner(models.Product),
            )
        )
        return result.scalar_one_or_none()

    async def list_categories(self) -> list[Category]:
        result = await self.session.execute(
            select(models.Category)
            .where(*self._owner(models.Category))
            .order_by(models.Category.name)
        )
        return [Category.model_validate(row) for row in result.scalars()]

    async def get_category(self, category_id: UUID) -> Category | None:
        row = await self._category_row(category_id)
        return Category.model_validate(row) if row else None

    async def create_category(self, values: dict[str, Any]) -> Category:
        row = models.Category(**values, user_id=self.user_id)
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        logger.debug("Created category %s", row.id)
        return Category.model_validate(row)

    async def update_category(
        self, category_id: UUID, values: dict[str, Any]
    ) -> Category | None:
        row = await self._category_row(category_id)
        if row is None:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.commit()
        await self.session.refresh(row)
        return Category.model_validate(row)

    async def delete_category(self, category_id: UUID) -> bool:
        """Delete a category, detaching its subcategories and products.

        Matches ON DELETE SET NULL even where the database does not enforce
        foreign keys (SQLite).
        """
        row = await self._category_row(category_id)
        if row is None:
            return False
        await self.session.execute(
            update(models.Category)
            .where(models.Category.parent_id == category_id)
            .values(parent_id=None)
        )
        await self.session.execute(
            update(models.Product)
            .where(models.Product.category_id == category_id)
            .values(category_id=None)
        )
        await self.session.execute(delete(models.Category).where(models.Category.id == category_id))
        await self.session.commit()
        logger.debug("Deleted category %s", category_id)
        return True

    async def count_products(self, category_id: UUID) -> int:
        return await self.session.scalar(
            select(func.count(models.Product.id)).where(
                *self._owner(models.Product),
                models.Product.category_id == category_id,
            )
        ) or 0

    async def count_products_by_category(self) -> dict[UUID, int]:
        result = await self.session.execute(
            select(models.Product.category_id, func.count(models.Product.id))
            .where(
                *self._owner(models.Product),
                models.Product.category_id.is_not(None),
            )
            .group_by(models.Product.category_id)
        )
        return {category_id: count for category_id, count in result.all()}

    async def list_products(self, page: int = 1, page_size: int = 20) -> Page:
        total = await self.session.scalar(
            select(func.count(models.Product.id)).where(*self._owner(models.Product))
        ) or 0
        result = await self.session.execute(
            select(models.Product)
            .where(*self._owner(models.Product))
            .order_by(models.Product.created_at.desc(), models.Product.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return Page(
            items=[Product.model_validate(row) for row in result.scalars()],
            total=total,
            page=page,
            page_size=page_size,
            page_count=page_count(total, page_size),
        )

    async def get_product(self, product_id: UUID) -> Product | None:
        row = await self._product_row(product_id)
        return Product.model_validate(row) if row else None

    async def create_product(self, values: dict[str, Any]) -> Product:
        row = models.Product(**_sql_values(values), user_id=self.user_id)
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        logger.debug("Created product %s", row.id)
        return Product.model_validate(row)

    async def update_product(
        self, product_id: UUID, values: dict[str, Any]
    ) -> Product | None:
        row = await self._product_row(product_id)
        if row is None:
            return None
        for key, value in _sql_values(values).items():
            setattr(row, key, value)
        await self.session.commit()
        await self.session.refresh(row)
        return Product.model_validate(row)

    async def delete_product(self, product_id: UUID) -> Product | None:
        row = await self._product_row(product_id)
        if row is None:
            return None
        product = Product.model_validate(row)
        await self.session.delete(row)
        await self.session.commit()
        logger.debug("Deleted product %s", product_id)
        return product


def _sql_values(values: dict[str, Any]) -> dict[str, Any]:
    """Adapt API values to column types (price is NUMERIC, enums are text)."""
    values = dict(values)
    if values.get("price") is not None:
        values["price"] = Decimal(str(values["price"]))
    if values.get("gpsr_moderation_status") is not None:
        values["gpsr_moderation_status"] = str(
            getattr(values["gpsr_moderation_status"], "value", values["gpsr_moderation_status"])
        )
    return values


# =============================================================================
# Hosted backend REST
# =============================================================================


class RestCatalogStore:
    """Catalog store on the backend's relational REST endpoint."""

    def __init__(self, backend: AsyncClient, user_id: str | None) -> None:
        self.backend = backend
        self.user_id = user_id

    def _owned(self, builder: Any) -> Any:
        """Limit a filterable builder to the user's rows.

        Without a user (moderation) every row row-level security allows is
        visible.
        """
        return builder if self.user_id is None else builder.eq("user_id", self.user_id)

    def _select(self, table: str, *columns: str, **options: Any) -> Any:
        return self._owned(self.backend.table(table).select(*(columns or ("*",)), **options))

    async def list_categories(self) -> list[Category]:
        response = await self._select(CATEGORIES_TABLE).order("name").execute()
        return [Category.model_validate(row) for row in response.data]

    async def get_category(self, category_id: UUID) -> Category | None:
        response = await (
            self._select(CATEGORIES_TABLE).eq("id", str(category_id)).limit(1).execute()
        )
        return Category.model_validate(response.data[0]) if response.data else None

    async def create_category(self, values: dict[str, Any]) -> Category:
        response = await (
            self.backend.table(CATEGORIES_TABLE)
            .insert(_json_values({**values, "user_id": self.user_id}))
            .execute()
        )
        return Category.model_validate(response.data[0])

    async def update_category(
        self, category_id: UUID, values: dict[str, Any]
    ) -> Category | None:
        builder = self.backend.table(CATEGORIES_TABLE).update(
            _json_values({**values, "updated_at": _now()})
        )
        response = await self._owned(builder).eq("id", str(category_id)).execute()
        return Category.model_validate(response.data[0]) if response.data else None

    async def delete_category(self, category_id: UUID) -> bool:
        # Children and products are detached by the ON DELETE SET NULL keys
        builder = self.backend.table(CATEGORIES_TABLE).delete()
        response = await self._owned(builder).eq("id", str(category_id)).execute()
        return bool(response.data)

    async def count_products(self, category_id: UUID) -> int:
        response = await (
            self._select(PRODUCTS_TABLE, "id", count="exact")
            .eq("category_id", str(category_id))
            .limit(0)
            .execute()
        )
        return response.count or 0

    async def count_products_by_category(self) -> dict[UUID, int]:
        """Product counts from an embedded aggregate, one row per category."""
        response = await self._select(CATEGORIES_TABLE, "id", "products(count)").execute()
        counts: dict[UUID, int] = {}
        for row in response.data:
            embedded = row.get("products") or [{"count": 0}]
            if embedded[0]["count"]:
                counts[UUID(str(row["id"]))] = embedded[0]["count"]
        return counts

    async def list_products(self, page: int = 1, page_size: int = 20) -> Page:
        start = (page - 1) * page_size
        response = await (
            self._select(PRODUCTS_TABLE, count="exact")
            .order("created_at", desc=True)
            .range(start, start + page_size - 1)
            .execute()
        )
        total = response.count if response.count is not None else start + len(response.data)
        return Page(
            items=[Product.model_validate(row) for row in response.data],
            total=total,
            page=page,
            page_size=page_size,
            page_count=page_count(total, page_size),
        )

    async def get_product(self, product_id: UUID) -> Product | None:
        response = await (
            self._select(PRODUCTS_TABLE).eq("id", str(product_id)).limit(1).execute()
        )
        return Product.model_validate(response.data[0]) if response.data else None

    async def create_product(self, values: dict[str, Any]) -> Product:
        response = await (
            self.backend.table(PRODUCTS_TABLE)
            .insert(_json_values({**values, "user_id": self.user_id}))
            .execute()
        )
        return Product.model_validate(response.data[0])

    async def update_product(
        self, product_id: UUID, values: dict[str, Any]
    ) -> Product | None:
        builder = self.backend.table(PRODUCTS_TABLE).update(
            _json_values({**values, "updated_at": _now()})
        )
        response = await self._owned(builder).eq("id", str(product_id)).execute()
        return Product.model_validate(response.data[0]) if response.data else None

    async def delete_product(self, product_id: UUID) -> Product | None:
        builder = self.backend.table(PRODUCTS_TABLE).delete()
        response = await self._owned(builder).eq("id", str(product_id)).execute()
        return Product.model_validate(response.data[0]) if response.data else None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _json_values(values: dict[str, Any]) -> dict[str, Any]:
    """UUIDs, datetimes, enums and nested models to JSON-safe values."""
    return to_jsonable_python(values)
