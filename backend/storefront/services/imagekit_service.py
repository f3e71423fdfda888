"""
Storefront Backend: ImageKit Uploads
======================================

What:  Two ways to get a product image into ImageKit.
         - get_upload_auth: short-lived signed parameters so the browser can
           upload directly without ever seeing the private key.
         - upload: the server receives the file and forwards it to ImageKit's
           upload API (used when the client cannot upload directly).
How:   signature = hex(HMAC-SHA1(private_key, token + str(expire))), the
       scheme ImageKit's client-side upload API verifies. Server uploads use
       HTTP basic auth with the private key as username.
"""

import hashlib
import hmac
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from storefront.config import settings
from storefront.exceptions import (
    StorefrontError,
    UpstreamError,
    UpstreamErrorKind,
    ValidationError,
)
from storefront.services.printify_client import classify_status

logger = logging.getLogger(__name__)

PROVIDER = "ImageKit"

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif", ".svg"})


def sign(private_key: str, token: str, expire: int) -> str:
    return hmac.new(
        private_key.encode("utf-8"),
        f"{token}{expire}".encode("utf-8"),
        hashlib.sha1,
    ).hexdigest()


def _require_private_key() -> str:
    if not settings.imagekit_private_key:
        raise StorefrontError(message="Image uploads are not configured")
    return settings.imagekit_private_key


class ImageKitService:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def get_upload_auth(
        self, token: Optional[str] = None, now: Optional[float] = None
    ) -> Dict[str, Union[str, int]]:
        private_key = _require_private_key()

        token = token or uuid.uuid4().hex
        expire = int(now if now is not None else time.time()) + settings.imagekit_token_ttl
        return {
            "token": token,
            "expire": expire,
            "signature": sign(private_key, token, expire),
            "public_key": settings.imagekit_public_key,
            "url_endpoint": settings.imagekit_url_endpoint,
        }

    def validate_file(self, filename: str, content: bytes) -> None:
        """Extension, emptiness and size checks before anything leaves the server."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
            )
        if not content:
            raise ValidationError(message="No file provided", field="file")
        if len(content) > settings.max_upload_size:
            max_mb = settings.max_upload_size / (1024 * 1024)
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB",
                field="file",
                context={"size": len(content)},
            )

    async def upload(
        self, filename: str, content: bytes, folder: str = "/products"
    ) -> Dict[str, Any]:
        private_key = _require_private_key()
        self.validate_file(filename, content)

        try:
            async with httpx.AsyncClient(
                timeout=settings.imagekit_timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    settings.imagekit_upload_url,
                    auth=(private_key, ""),
                    data={
                        "fileName": filename,
                        "folder": folder or "/products",
                        "useUniqueFileName": "true",
                    },
                    files={"file": (filename, content)},
                )
        except httpx.HTTPError as e:
            logger.warning("ImageKit upload failed in transport: %s", e)
            raise UpstreamError(
                provider=PROVIDER,
                kind=UpstreamErrorKind.NETWORK_ERROR,
                message="Failed to upload image",
            ) from e

        kind = classify_status(response.status_code)
        if kind is not None:
            logger.warning("ImageKit upload rejected: HTTP %d", response.status_code)
            raise UpstreamError(
                provider=PROVIDER,
                kind=kind,
                message="Failed to upload image",
                upstream_status=response.status_code,
            )

        body = response.json()
        logger.info("Uploaded %s to ImageKit as %s", filename, body.get("filePath"))
        return {
            "url": body.get("url"),
            "file_id": body.get("fileId"),
            "file_path": body.get("filePath"),
            "name": filename,
        }


imagekit_service = ImageKitService()
