"""Media uploader — stores listing images/videos with tiered fallback.

For each file the tiers are tried in order:
  1. the primary bucket for the media kind (images / videos)
  2. the general-purpose fallback bucket
  3. inline `data:` URI, only for files below the inline limit

The first tier that succeeds wins. A file for which every tier fails raises
`MediaUploadExhaustedError` naming each failed target; other files in the
same batch are still attempted.
"""
import base64
import mimetypes
import time
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

from estatedesk.core.exceptions import BackendError, MediaUploadExhaustedError, TierFailure
from estatedesk.core.logging import get_logger
from estatedesk.services.backend_client import Backend

logger = get_logger(__name__)

INLINE_TARGET = "inline"
DEFAULT_INLINE_LIMIT = 10 * 1024 * 1024

_PUBLIC_MARKERS = ("/storage/v1/object/public/", "/api/v1/media/")


@dataclass
class MediaFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def kind(self) -> str:
        return "video" if (self.content_type or "").startswith("video/") else "image"


@dataclass
class UploadedMedia:
    file_name: str
    url: str
    target: str


@dataclass
class UploadBatchResult:
    uploaded: List[UploadedMedia] = field(default_factory=list)
    failures: List[MediaUploadExhaustedError] = field(default_factory=list)

    @property
    def urls(self) -> List[str]:
        return [item.url for item in self.uploaded]


def encode_data_uri(content: bytes, content_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type or 'application/octet-stream'};base64,{encoded}"


def split_public_url(url: str) -> Optional[Tuple[str, str]]:
    """(bucket, path) for a URL produced by get_public_url, else None."""
    path = urlparse(url).path
    for marker in _PUBLIC_MARKERS:
        if marker in path:
            remainder = path.split(marker, 1)[1]
            bucket, _, object_path = remainder.partition("/")
            if bucket and object_path:
                return unquote(bucket), unquote(object_path)
    return None


class MediaUploader:
    def __init__(
        self,
        backend: Backend,
        image_bucket: str = "property-images",
        video_bucket: str = "property-videos",
        fallback_bucket: str = "uploads",
        inline_limit: int = DEFAULT_INLINE_LIMIT,
        path_prefix: str = "properties",
    ):
        self.backend = backend
        self.image_bucket = image_bucket
        self.video_bucket = video_bucket
        self.fallback_bucket = fallback_bucket
        self.inline_limit = inline_limit
        self.path_prefix = path_prefix.strip("/")

    def targets_for(self, media: MediaFile) -> List[str]:
        primary = self.video_bucket if media.kind == "video" else self.image_bucket
        targets = [primary]
        if self.fallback_bucket and self.fallback_bucket != primary:
            targets.append(self.fallback_bucket)
        return targets

    def object_path(self, media: MediaFile) -> str:
        ext = PurePosixPath(media.filename or "").suffix.lower()
        if not ext:
            ext = mimetypes.guess_extension(media.content_type or "") or ""
        return f"{self.path_prefix}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"

    async def upload_file(self, media: MediaFile) -> UploadedMedia:
        failures: List[TierFailure] = []

        for bucket in self.targets_for(media):
            path = self.object_path(media)
            try:
                await self.backend.upload_object(bucket, path, media.content, media.content_type)
            except BackendError as e:
                logger.warning(
                    "Upload of '%s' to bucket '%s' failed: %s",
                    media.filename,
                    bucket,
                    str(e),
                    extra={"bucket": bucket, "tier": len(failures) + 1},
                )
                failures.append(TierFailure(bucket, str(e)))
                continue
            url = self.backend.get_public_url(bucket, path)
            logger.info("Uploaded '%s' to '%s'", media.filename, bucket, extra={"bucket": bucket})
            return UploadedMedia(media.filename, url, bucket)

        if media.size < self.inline_limit:
            logger.info(
                "Storing '%s' inline after %d failed bucket(s)",
                media.filename,
                len(failures),
                extra={"tier": INLINE_TARGET},
            )
            return UploadedMedia(media.filename, encode_data_uri(media.content, media.content_type), INLINE_TARGET)

        raise MediaUploadExhaustedError(
            file_name=media.filename,
            size=media.size,
            inline_limit=self.inline_limit,
            tier_failures=failures,
        )

    async def upload_batch(self, files: Sequence[MediaFile]) -> UploadBatchResult:
        """Upload every file, collecting successes and failures side by side."""
        result = UploadBatchResult()
        for media in files:
            try:
                result.uploaded.append(await self.upload_file(media))
            except MediaUploadExhaustedError as e:
                logger.error("Media upload exhausted: %s", e.message)
                result.failures.append(e)
        return result

    async def upload(self, files: Sequence[MediaFile]) -> List[str]:
        """Upload all files and return their URLs in input order.

        If any file fails, the first failure is raised with the URLs of the
        files that did upload attached, so callers can keep or clean them up.
        """
        result = await self.upload_batch(files)
        if result.failures:
            error = result.failures[0]
            error.uploaded_urls = result.urls
            error.failures = list(result.failures)
            raise error
        return result.urls

    async def delete(self, url: str) -> bool:
        """Remove a stored object by its public URL. Inline URIs have nothing to remove."""
        if not url or url.startswith("data:"):
            return False
        location = split_public_url(url)
        if location is None:
            logger.warning("Cannot delete media outside managed storage: %s", url[:120])
            return False
        bucket, path = location
        await self.backend.remove_object(bucket, path)
        logger.info("Deleted media %s/%s", bucket, path, extra={"bucket": bucket})
        return True
