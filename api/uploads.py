"""Product file uploads to object storage.

Objects live in one bucket under a per-kind prefix. Photos and documents
get random names; GPSR files keep their original name behind a millisecond
timestamp.
"""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import PurePosixPath
from typing import Any, Iterable
from urllib.parse import quote, unquote, urlparse

from supabase import AsyncClient

from baas.config import BaasConfig
from shared.types import FileKind

from .schemas import FileRef, Product, UploadedFile

logger = logging.getLogger(__name__)

PREFIXES = {
    FileKind.photo: "product-photos",
    FileKind.document: "product-documents",
    FileKind.gpsr_pictogram: "gpsr/pictograms",
    FileKind.gpsr_declaration: "gpsr/declarations",
    FileKind.gpsr_certificate: "gpsr/certificates",
}

_RANDOM_NAME_KINDS = (FileKind.photo, FileKind.document)


class UploadTooLarge(ValueError):
    """Raised when a file exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File is {size} bytes; the limit is {limit} bytes")
        self.size = size
        self.limit = limit


def _safe_name(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    return name.replace(" ", "_") or "file"


def object_path(kind: FileKind, filename: str, now_ms: int | None = None) -> str:
    """Storage key for a new upload of `kind`."""
    kind = FileKind(kind)
    prefix = PREFIXES[kind]
    name = _safe_name(filename)
    if kind in _RANDOM_NAME_KINDS:
        ext = PurePosixPath(name).suffix.lstrip(".")
        return f"{prefix}/{uuid.uuid4().hex}.{ext}" if ext else f"{prefix}/{uuid.uuid4().hex}"
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}/{millis}-{name}"


def public_url(base_url: str, bucket: str, path: str) -> str:
    """Public URL of the object `path` in the public `bucket`."""
    return f"{base_url.rstrip('/')}/storage/v1/object/public/{bucket}/{quote(path)}"


def object_path_from_url(url: str, bucket: str) -> str | None:
    """Map a public object URL back to its key in `bucket`.

    Returns None for URLs that do not point into the bucket.
    """
    marker = f"/object/public/{bucket}/"
    path = unquote(urlparse(url).path)
    if marker not in path:
        return None
    return path.split(marker, 1)[1] or None


async def upload_product_file(
    backend: AsyncClient,
    config: BaasConfig,
    kind: FileKind,
    filename: str,
    content: bytes,
    content_type: str | None = None,
    max_bytes: int | None = None,
) -> UploadedFile:
    """Store one product file in the configured bucket and return where it ended up.

    Raises:
        UploadTooLarge: If `content` is larger than `max_bytes`.
        StorageException: If the backend rejects the upload.
    """
    if max_bytes is not None and len(content) > max_bytes:
        raise UploadTooLarge(len(content), max_bytes)

    kind = FileKind(kind)
    content_type = content_type or "application/octet-stream"
    path = object_path(kind, filename)
    await backend.storage.from_(config.storage_bucket).upload(
        path,
        content,
        {"content-type": content_type, "cache-control": "3600", "upsert": "false"},
    )
    logger.info("Uploaded %s %s (%d bytes)", kind.value, path, len(content))
    return UploadedFile(
        kind=kind,
        url=public_url(config.url or "", config.storage_bucket, path),
        path=path,
        name=filename,
        type=content_type,
    )


async def remove_objects(backend: AsyncClient, bucket: str, urls: Iterable[str]) -> list[str]:
    """Delete the objects behind public `urls` and return their keys.

    URLs that do not point into `bucket` are skipped.
    """
    paths = [p for p in (object_path_from_url(u, bucket) for u in urls) if p]
    if paths:
        await backend.storage.from_(bucket).remove(paths)
        logger.debug("Removed %d object(s) from %s", len(paths), bucket)
    return paths


def attach_file(product: Product, file: UploadedFile) -> dict[str, Any]:
    """Column updates adding `file` to `product`.

    A new declaration of conformity replaces the previous one.
    """
    match file.kind:
        case FileKind.photo:
            return {"photos": [*product.photos, file.url]}
        case FileKind.document:
            ref = FileRef(url=file.url, name=file.name, type=file.type)
            return {"files": [f.model_dump() for f in [*product.files, ref]]}
        case FileKind.gpsr_pictogram:
            return {"gpsr_pictograms": [*product.gpsr_pictograms, file.url]}
        case FileKind.gpsr_certificate:
            return {"gpsr_certificates": [*product.gpsr_certificates, file.url]}
        case FileKind.gpsr_declaration:
            return {"gpsr_declarations_of_conformity": file.url}
    raise ValueError(f"Unknown file kind: {file.kind}")


def detach_file(product: Product, url: str) -> dict[str, Any]:
    """Column updates removing `url` from wherever `product` references it.

    Returns an empty dict when the product does not reference the URL.
    """
    updates: dict[str, Any] = {}
    if url in product.photos:
        updates["photos"] = [p for p in product.photos if p != url]
    if any(f.url == url for f in product.files):
        updates["files"] = [f.model_dump() for f in product.files if f.url != url]
    if url in product.gpsr_pictograms:
        updates["gpsr_pictograms"] = [p for p in product.gpsr_pictograms if p != url]
    if url in product.gpsr_certificates:
        updates["gpsr_certificates"] = [c for c in product.gpsr_certificates if c != url]
    if product.gpsr_declarations_of_conformity == url:
        updates["gpsr_declarations_of_conformity"] = None
    return updates
