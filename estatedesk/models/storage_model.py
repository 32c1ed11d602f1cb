"""StoredObject SQLAlchemy model — binary objects for the SQL storage adapter."""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from estatedesk.database import Base


class StoredObject(Base):
    __tablename__ = "storage_objects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    bucket: Mapped[str] = mapped_column(String(100), index=True)
    path: Mapped[str] = mapped_column(String(1024))
    content_type: Mapped[Optional[str]] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(Integer, default=0)
    data: Mapped[bytes] = mapped_column(LargeBinary)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("bucket", "path", name="uq_storage_objects_bucket_path"),
    )

    def __repr__(self) -> str:
        return f"<StoredObject(bucket='{self.bucket}', path='{self.path}', size={self.size})>"
