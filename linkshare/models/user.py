import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, String

from linkshare.core.time import utcnow
from linkshare.db.base import Base


class UserRole(str, enum.Enum):
    USER = "user"
    SUPERUSER = "superuser"


class User(Base):
    """Account record owned by the user-management service; read here for link policy."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def is_superuser(self) -> bool:
        return self.role == UserRole.SUPERUSER
