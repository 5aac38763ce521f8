import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from linkshare.core.time import utcnow
from linkshare.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    action = Column(String(64), nullable=False)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # no FK: audit rows outlive deleted links
    link_pk = Column(String(36), nullable=True, index=True)
    details = Column(Text, nullable=True)
