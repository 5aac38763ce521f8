"""Model for shareable links to a single stored file."""
import secrets
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from linkshare.core.time import utcnow
from linkshare.db.base import Base
from linkshare.models.enums import AccessScope, AccessType, ExpirationType, VerificationType


link_allowed_users = Table(
    "link_allowed_users",
    Base.metadata,
    Column("link_pk", String(36), ForeignKey("links.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


def generate_link_id() -> str:
    # 128-bit random, hex encoded
    return secrets.token_hex(16)


class Link(Base):
    """Shareable reference to exactly one file.

    ``version`` is bumped by every owner mutation that can change an access
    decision (configuration edits, activation changes). Consumptions commit
    only if the version they were evaluated against is still current.
    """
    __tablename__ = "links"
    __table_args__ = (UniqueConstraint("created_by", "custom_name", name="uq_links_owner_custom_name"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    link_id = Column(String(32), unique=True, nullable=False, index=True, default=generate_link_id)
    custom_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")

    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Expiration: none | duration (seconds from created_at_utc) | date (absolute instant)
    expiration_type = Column(Enum(ExpirationType), default=ExpirationType.NONE, nullable=False)
    expiration_seconds = Column(Integer, nullable=True)
    expires_at_utc = Column(DateTime(timezone=True), nullable=True)

    access_limit = Column(Integer, nullable=True)

    verification_type = Column(Enum(VerificationType), default=VerificationType.NONE, nullable=False)
    verification_secret_hash = Column(String(255), nullable=True)

    access_scope = Column(Enum(AccessScope), default=AccessScope.PUBLIC, nullable=False)
    access_type = Column(Enum(AccessType), default=AccessType.INFO, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    favorite = Column(Boolean, default=False, nullable=False)

    access_count = Column(Integer, default=0, nullable=False)
    version = Column(Integer, default=1, nullable=False)

    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_accessed_at_utc = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    file = relationship("StoredFile")
    owner = relationship("User", foreign_keys=[created_by])
    allowed_users = relationship("User", secondary=link_allowed_users, order_by="User.username")
    access_logs = relationship(
        "LinkAccessLog",
        back_populates="link",
        order_by="LinkAccessLog.sequence_number",
        passive_deletes=True,
    )
