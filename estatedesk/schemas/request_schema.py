"""Request/response bodies for the bulk, status and media endpoints."""
from typing import List, Optional

from pydantic import BaseModel, Field

from estatedesk.schemas.property_schema import PropertyStatus


class BulkIdsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class BulkStatusRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    status: PropertyStatus


class StatusUpdateRequest(BaseModel):
    status: PropertyStatus


class BulkDeleteResult(BaseModel):
    deleted: int


class UploadedMediaRead(BaseModel):
    file_name: str
    url: str
    target: str


class UploadFailureRead(BaseModel):
    file_name: str
    size: int
    message: str
    targets: List[str] = []


class MediaUploadResult(BaseModel):
    uploaded: List[UploadedMediaRead] = []
    failures: List[UploadFailureRead] = []
    urls: List[str] = []


class MediaDeleteResult(BaseModel):
    url: str
    deleted: bool
    reason: Optional[str] = None
