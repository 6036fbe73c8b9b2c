"""
Blob storage for uploaded receipt files.

``BlobStore`` is the contract the receipt lifecycle talks to; files are
addressed by a ``blob_id`` (``<folder>/<key>``) and published under a URL
from which the id can be recovered. ``LocalBlobStore`` keeps files on disk
below ``UPLOAD_DIR`` and is served by the app under ``/uploads``.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)

RESOURCE_IMAGE = "image"
RESOURCE_RAW = "raw"

# Formats Pillow re-encodes with a quality setting
_LOSSY_FORMATS = {"JPEG", "WEBP"}


@dataclass(frozen=True)
class ImageTransform:
    """Bound the image to ``max_width`` x ``max_height`` and re-encode."""
    max_width: int
    max_height: int
    quality: int


@dataclass(frozen=True)
class StoredBlob:
    blob_id: str
    url: str


def resource_kind_for(mime_type: str) -> str:
    return RESOURCE_IMAGE if mime_type.startswith("image/") else RESOURCE_RAW


def transform_image(content: bytes, transform: ImageTransform) -> bytes:
    """Shrink (never enlarge) an image to fit the bounds, keeping its format."""
    with Image.open(io.BytesIO(content)) as image:
        fmt = image.format or "JPEG"
        image.thumbnail((transform.max_width, transform.max_height))
        if fmt == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        options = {"quality": transform.quality} if fmt in _LOSSY_FORMATS else {}
        out = io.BytesIO()
        image.save(out, format=fmt, **options)
    return out.getvalue()


class BlobStore:
    def store(
        self,
        content: bytes,
        *,
        folder: str,
        key: str,
        resource_kind: str,
        transform: Optional[ImageTransform] = None,
    ) -> StoredBlob:
        raise NotImplementedError

    def read(self, blob_id: str) -> bytes:
        raise NotImplementedError

    def delete(self, blob_id: str, resource_kind: str) -> None:
        raise NotImplementedError

    def blob_id_from_url(self, url: str) -> str:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, root: str | Path, public_url: str):
        self.root = Path(root).resolve()
        self.public_url = public_url.rstrip("/")

    def _path(self, blob_id: str) -> Path:
        path = (self.root / blob_id).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Blob id escapes storage root: {blob_id!r}")
        return path

    def store(
        self,
        content: bytes,
        *,
        folder: str,
        key: str,
        resource_kind: str,
        transform: Optional[ImageTransform] = None,
    ) -> StoredBlob:
        if resource_kind == RESOURCE_IMAGE and transform is not None:
            content = transform_image(content, transform)

        blob_id = f"{folder.strip('/')}/{key}"
        path = self._path(blob_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info("Stored %s blob %s (%d bytes)", resource_kind, blob_id, len(content))
        return StoredBlob(blob_id=blob_id, url=f"{self.public_url}/{blob_id}")

    def read(self, blob_id: str) -> bytes:
        return self._path(blob_id).read_bytes()

    def delete(self, blob_id: str, resource_kind: str) -> None:
        self._path(blob_id).unlink()
        logger.info("Deleted %s blob %s", resource_kind, blob_id)

    def blob_id_from_url(self, url: str) -> str:
        prefix = self.public_url + "/"
        if not url.startswith(prefix):
            raise ValueError(f"URL is not served by this store: {url}")
        return url[len(prefix):]
