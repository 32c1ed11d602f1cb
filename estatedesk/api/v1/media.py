"""Media API router — listing image/video uploads.
/api/v1/media

POST accepts multipart files and runs them through the tiered uploader.
By default the response reports uploaded and failed files side by side;
with `strict=true` any failed file turns the request into a 502 whose body
still lists the URLs that were stored.

GET /{bucket}/{path} serves objects kept by the SQL backend. It is mounted
without the API key so the returned URLs work in <img> tags.
"""
import mimetypes
from typing import List

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import Response

from estatedesk.api.deps import get_backend, get_uploader
from estatedesk.api.responses import ok
from estatedesk.core.exceptions import NotFoundError
from estatedesk.core.logging import get_logger
from estatedesk.schemas.base_schema import ApiResponse
from estatedesk.schemas.request_schema import (
    MediaDeleteResult,
    MediaUploadResult,
    UploadedMediaRead,
    UploadFailureRead,
)
from estatedesk.services.backend_client import Backend
from estatedesk.services.upload_service import MediaFile, MediaUploader

logger = get_logger(__name__)

router = APIRouter()
public_router = APIRouter()


async def _read_upload(upload: UploadFile) -> MediaFile:
    content = await upload.read()
    filename = upload.filename or "upload"
    content_type = upload.content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return MediaFile(filename=filename, content=content, content_type=content_type)


@router.post("", response_model=ApiResponse[MediaUploadResult])
async def upload_media(
    request: Request,
    files: List[UploadFile] = File(...),
    strict: bool = Query(False, description="Fail the request if any file cannot be stored"),
    uploader: MediaUploader = Depends(get_uploader),
):
    media = [await _read_upload(f) for f in files]

    if strict:
        # Raises MediaUploadExhaustedError → 502 with the stored URLs attached
        urls = await uploader.upload(media)
        return ok(MediaUploadResult(urls=urls), f"{len(urls)} files uploaded", request)

    batch = await uploader.upload_batch(media)
    result = MediaUploadResult(
        uploaded=[
            UploadedMediaRead(file_name=item.file_name, url=item.url, target=item.target)
            for item in batch.uploaded
        ],
        failures=[
            UploadFailureRead(
                file_name=failure.file_name,
                size=failure.size,
                message=failure.message,
                targets=[t.target for t in failure.tier_failures],
            )
            for failure in batch.failures
        ],
        urls=batch.urls,
    )
    return ok(result, f"Uploaded {len(batch.uploaded)} of {len(media)} files", request)


@router.delete("", response_model=ApiResponse[MediaDeleteResult])
async def delete_media(
    request: Request,
    url: str = Query(..., description="Public URL returned by the upload"),
    uploader: MediaUploader = Depends(get_uploader),
):
    deleted = await uploader.delete(url)
    reason = None if deleted else "Not a managed storage URL"
    return ok(MediaDeleteResult(url=url, deleted=deleted, reason=reason), "Media delete processed", request)


@public_router.get("/{bucket}/{path:path}")
async def get_media(
    bucket: str,
    path: str,
    backend: Backend = Depends(get_backend),
):
    get_object = getattr(backend, "get_object", None)
    stored = await get_object(bucket, path) if get_object is not None else None
    if stored is None:
        raise NotFoundError(f"Media {bucket}/{path} not found")
    return Response(
        content=stored.data,
        media_type=stored.content_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
