"""FastAPI route handlers for the catalog.

Categories and products are always scoped to the signed-in user. Product
saves re-submit the GPSR data for moderation; moderators review it through
`/products/{id}/moderation`.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from supabase import AsyncClient, StorageException
from supabase_auth.types import User

from baas.config import BaasConfig
from shared.types import FileKind, ModerationStatus

from . import gpsr, tree, uploads
from .dependencies import (
    get_backend,
    get_baas_config,
    get_config,
    get_moderation_store,
    get_store,
    require_user,
)
from .schemas import (
    Category,
    CategoryDetail,
    CategoryIn,
    CategoryNode,
    CategoryOption,
    ModerationIn,
    Page,
    Product,
    ProductDetail,
    ProductIn,
    UploadedFile,
)
from .store import CatalogStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "store": "sql" if get_config(request).database_url else "rest"}


# =============================================================================
# Categories
# =============================================================================


@router.get("/categories", response_model=list[CategoryNode])
async def list_categories(store: CatalogStore = Depends(get_store)) -> list[CategoryNode]:
    """The user's categories as a tree, with product counts."""
    categories = await store.list_categories()
    counts = await store.count_products_by_category()
    return tree.build_category_tree(categories, counts)


@router.get("/categories/options", response_model=list[CategoryOption])
async def category_options(store: CatalogStore = Depends(get_store)) -> list[CategoryOption]:
    return tree.category_options(await store.list_categories())


@router.post("/categories", response_model=Category, status_code=201)
async def create_category(
    body: CategoryIn, store: CatalogStore = Depends(get_store)
) -> Category:
    if body.parent_id is not None and await store.get_category(body.parent_id) is None:
        raise HTTPException(status_code=400, detail="Parent category not found")

    values = body.model_dump()
    values["slug"] = body.slug or gpsr.slugify(body.name)
    category = await store.create_category(values)
    logger.info("Category %s created", category.id)
    return category


@router.get("/categories/{category_id}", response_model=CategoryDetail)
async def get_category(
    category_id: UUID, store: CatalogStore = Depends(get_store)
) -> CategoryDetail:
    """Category plus the parents it may be moved under and its breadcrumb."""
    categories = await store.list_categories()
    category = next((c for c in categories if c.id == category_id), None)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return CategoryDetail(
        category=category,
        parents=tree.valid_parents(categories, category_id),
        path=tree.category_path(categories, category_id),
    )


@router.put("/categories/{category_id}", response_model=Category)
async def update_category(
    category_id: UUID, body: CategoryIn, store: CatalogStore = Depends(get_store)
) -> Category:
    categories = await store.list_categories()
    known = {c.id for c in categories}
    if category_id not in known:
        raise HTTPException(status_code=404, detail="Category not found")
    if body.parent_id is not None and body.parent_id not in known:
        raise HTTPException(status_code=400, detail="Parent category not found")
    if tree.creates_cycle(categories, category_id, body.parent_id):
        raise HTTPException(
            status_code=400,
            detail="A category cannot be moved under itself or one of its subcategories",
        )

    values = body.model_dump()
    values["slug"] = body.slug or gpsr.slugify(body.name)
    category = await store.update_category(category_id, values)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(category_id: UUID, store: CatalogStore = Depends(get_store)) -> None:
    """Delete an empty category.

    Categories that still hold products or subcategories are kept (409).
    """
    categories = await store.list_categories()
    if not any(c.id == category_id for c in categories):
        raise HTTPException(status_code=404, detail="Category not found")

    if await store.count_products(category_id):
        raise HTTPException(
            status_code=409, detail="Cannot delete category with associated products"
        )
    if any(c.parent_id == category_id for c in categories):
        raise HTTPException(status_code=409, detail="Cannot delete category with subcategories")

    if not await store.delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    logger.info("Category %s deleted", category_id)


# =============================================================================
# Products
# =============================================================================


async def _detail(store: CatalogStore, product: Product) -> ProductDetail:
    category_name = ""
    if product.category_id is not None:
        category = await store.get_category(product.category_id)
        category_name = category.name if category else ""
    return ProductDetail(**product.model_dump(), category_name=category_name)


async def _get_product_or_404(store: CatalogStore, product_id: UUID) -> Product:
    product = await store.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _submission(store: CatalogStore, body: ProductIn, user: User) -> dict:
    if body.category_id is not None and await store.get_category(body.category_id) is None:
        raise HTTPException(status_code=400, detail="Category not found")
    values = gpsr.prepare_submission(body.model_dump(), user.email)
    values["slug"] = body.slug or gpsr.slugify(body.name)
    return values


@router.get("/products", response_model=Page)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store: CatalogStore = Depends(get_store),
) -> Page:
    """Newest products first."""
    return await store.list_products(page=page, page_size=page_size)


@router.post("/products", response_model=ProductDetail, status_code=201)
async def create_product(
    body: ProductIn,
    store: CatalogStore = Depends(get_store),
    user: User = Depends(require_user),
) -> ProductDetail:
    product = await store.create_product(await _submission(store, body, user))
    logger.info("Product %s created, GPSR data pending moderation", product.id)
    return await _detail(store, product)


@router.get("/products/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: UUID, store: CatalogStore = Depends(get_store)
) -> ProductDetail:
    return await _detail(store, await _get_product_or_404(store, product_id))


@router.put("/products/{product_id}", response_model=ProductDetail)
async def update_product(
    product_id: UUID,
    body: ProductIn,
    store: CatalogStore = Depends(get_store),
    user: User = Depends(require_user),
) -> ProductDetail:
    """Replace a product; its GPSR data goes back into the moderation queue."""
    await _get_product_or_404(store, product_id)
    product = await store.update_product(product_id, await _submission(store, body, user))
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return await _detail(store, product)


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    store: CatalogStore = Depends(get_store),
    backend: AsyncClient = Depends(get_backend),
    baas_config: BaasConfig = Depends(get_baas_config),
) -> None:
    """Delete a product and, where possible, the files it references.

    File cleanup failures are logged but don't fail the request (the
    product is already gone).
    """
    product = await store.delete_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    urls = [
        *product.photos,
        *(f.url for f in product.files),
        *product.gpsr_pictograms,
        *product.gpsr_certificates,
    ]
    if product.gpsr_declarations_of_conformity:
        urls.append(product.gpsr_declarations_of_conformity)
    try:
        await uploads.remove_objects(backend, baas_config.storage_bucket, urls)
    except StorageException:
        logger.exception("Failed to remove files of product %s", product_id)


async def _discard_upload(
    backend: AsyncClient, baas_config: BaasConfig, uploaded: UploadedFile
) -> None:
    """Remove an object whose product could not be updated to reference it."""
    try:
        await uploads.remove_objects(backend, baas_config.storage_bucket, [uploaded.url])
    except StorageException:
        logger.exception("Failed to remove orphaned upload %s", uploaded.path)


@router.post("/products/{product_id}/files", response_model=UploadedFile, status_code=201)
async def upload_file(
    product_id: UUID,
    request: Request,
    kind: FileKind = Form(...),
    file: UploadFile = File(...),
    store: CatalogStore = Depends(get_store),
    backend: AsyncClient = Depends(get_backend),
    baas_config: BaasConfig = Depends(get_baas_config),
) -> UploadedFile:
    """Store a photo, document or GPSR file and attach it to the product.

    The stored object is removed again when the product cannot be updated,
    so storage never keeps a file no product references.
    """
    product = await _get_product_or_404(store, product_id)
    content = await file.read()
    try:
        uploaded = await uploads.upload_product_file(
            backend,
            baas_config,
            kind,
            file.filename or "file",
            content,
            content_type=file.content_type,
            max_bytes=get_config(request).max_upload_bytes,
        )
    except uploads.UploadTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e)) from e

    try:
        updated = await store.update_product(product_id, uploads.attach_file(product, uploaded))
    except Exception:
        await _discard_upload(backend, baas_config, uploaded)
        raise
    if updated is None:
        await _discard_upload(backend, baas_config, uploaded)
        raise HTTPException(status_code=404, detail="Product not found")
    return uploaded


@router.delete("/products/{product_id}/files", response_model=ProductDetail)
async def remove_file(
    product_id: UUID,
    url: str = Query(..., min_length=1),
    store: CatalogStore = Depends(get_store),
    backend: AsyncClient = Depends(get_backend),
    baas_config: BaasConfig = Depends(get_baas_config),
) -> ProductDetail:
    """Remove a file from storage and detach it from the product."""
    product = await _get_product_or_404(store, product_id)
    updates = uploads.detach_file(product, url)
    if not updates:
        raise HTTPException(status_code=404, detail="File not attached to this product")

    await uploads.remove_objects(backend, baas_config.storage_bucket, [url])

    updated = await store.update_product(product_id, updates)
    if updated is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return await _detail(store, updated)


# =============================================================================
# Moderation
# =============================================================================


@router.post("/products/{product_id}/moderation", response_model=ProductDetail)
async def moderate_product(
    product_id: UUID,
    body: ModerationIn,
    store: CatalogStore = Depends(get_moderation_store),
) -> ProductDetail:
    """Approve or reject a product's GPSR submission (moderators only)."""
    if body.status == ModerationStatus.pending:
        raise HTTPException(status_code=400, detail="Status must be approved or rejected")

    await _get_product_or_404(store, product_id)
    product = await store.update_product(
        product_id, gpsr.apply_moderation(body.status, body.comment)
    )
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s GPSR %s", product_id, product.gpsr_moderation_status.value)
    return await _detail(store, product)
