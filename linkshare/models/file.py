"""Model for stored file metadata (bytes live in the storage backend)."""
import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from linkshare.core.time import utcnow
from linkshare.db.base import Base


class StoredFile(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    original_filename = Column(String(255), nullable=False)
    custom_filename = Column(String(255), nullable=True)
    mimetype = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(BigInteger, nullable=False, default=0)
    storage_ref = Column(String(512), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner = relationship("User")

    @property
    def display_name(self) -> str:
        return self.custom_filename or self.original_filename
