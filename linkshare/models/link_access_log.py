"""Model for the append-only consumption log of a shared link."""
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from linkshare.core.time import utcnow
from linkshare.db.base import Base
from linkshare.models.enums import AccessKind


class LinkAccessLog(Base):
    """One row per successful consumption; ``sequence_number`` is the access count it produced."""
    __tablename__ = "link_access_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    link_pk = Column(String(36), ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    access_kind = Column(Enum(AccessKind), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    accessed_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    ip_address = Column(String(45), nullable=True)  # IPv4/IPv6
    user_agent = Column(Text, nullable=True)

    link = relationship("Link", back_populates="access_logs")
    user = relationship("User")
