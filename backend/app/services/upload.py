from __future__ import annotations
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from app.core import config
from app.core.errors import PayloadTooLarge, UnsupportedMediaType, UpstreamError, ValidationFailed
from app.metrics import image_uploads_total, upload_latency_seconds
from app.utils.clock import utcnow

log = logging.getLogger(__name__)

@dataclass
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

def validate_files(
    files: List[IncomingFile],
    max_files: int = config.MAX_UPLOAD_FILES,
    max_bytes: int = config.MAX_UPLOAD_BYTES,
) -> None:
    """Reject the whole batch before anything is sent to the image host."""
    if len(files) > max_files:
        raise PayloadTooLarge(f"Too many files. Maximum is {max_files} images per request.")
    for f in files:
        if not (f.content_type or "").lower().startswith("image/"):
            raise UnsupportedMediaType()
        if f.size > max_bytes:
            raise PayloadTooLarge(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB per file.")

def unique_name(filename: str, now_ms: Optional[int] = None) -> str:
    """<epoch-ms>-<name>, whitespace runs collapsed to '-'."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    name = re.sub(r"\s+", "-", filename or "image")
    return f"{stamp}-{name}"

class ImageHost:
    """Thin client for a Publitio-style file API: POST {base}/create."""

    def __init__(
        self,
        base_url: str = config.IMAGE_HOST_URL,
        token: str = config.IMAGE_HOST_TOKEN,
        folder: str = config.IMAGE_HOST_FOLDER,
        timeout: float = config.UPLOAD_TIMEOUT_SEC,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.folder = folder
        self.timeout = timeout
        if not self.token:
            log.warning("[upload] IMAGE_HOST_TOKEN not set; uploads will fail")

    def upload(self, data: bytes, filename: str, content_type: str = "application/octet-stream") -> Dict[str, Any]:
        """Send one file; keep only the hosted url, asset id and byte size."""
        if not data:
            raise ValidationFailed("Missing file buffer")
        if not filename:
            raise ValidationFailed("Missing file name")
        started = time.perf_counter()
        try:
            r = requests.post(
                f"{self.base_url}/create",
                files={"file": (filename, data, content_type)},
                data={"folder": self.folder, "title": filename},
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
            )
            r.raise_for_status()
            payload = r.json()
        except (requests.RequestException, ValueError) as e:
            image_uploads_total.labels(outcome="failure").inc()
            log.error("[upload] %s failed: %s", filename, e)
            raise UpstreamError(str(e))
        finally:
            upload_latency_seconds.observe(time.perf_counter() - started)

        url = payload.get("url_preview") or payload.get("url")
        asset_id = payload.get("id")
        if not url or not asset_id:
            image_uploads_total.labels(outcome="failure").inc()
            raise UpstreamError("Image host response is missing url or id")
        image_uploads_total.labels(outcome="success").inc()
        log.info("[upload] %s -> %s in %.2fs", filename, asset_id, time.perf_counter() - started)
        return {"url": url, "publitio_id": str(asset_id), "bytes": payload.get("size", len(data))}

def relay_images(host: ImageHost, files: List[IncomingFile]) -> List[Dict[str, Any]]:
    """
    Upload files in order and build the project's image records.

    The first failure aborts the batch. Files already accepted by the host stay
    there; the caller persists nothing.
    """
    images: List[Dict[str, Any]] = []
    for i, f in enumerate(files, start=1):
        try:
            result = host.upload(f.data, unique_name(f.filename), f.content_type)
        except UpstreamError as e:
            raise UpstreamError(f"Failed to upload image {i}: {e.message}")
        images.append({
            "url": result["url"],
            "publitio_id": result["publitio_id"],
            "filename": f.filename,
            "size": result["bytes"],
            "format": (f.content_type.split("/", 1)[1] if "/" in f.content_type else "") or "jpeg",
            "uploadedAt": utcnow().isoformat(),
        })
    return images

def get_image_host() -> ImageHost:
    return ImageHost()
