from .enums import AccessKind, AccessScope, AccessType, ExpirationType, VerificationType
from .user import User, UserRole
from .file import StoredFile
from .link import Link, generate_link_id, link_allowed_users
from .link_access_log import LinkAccessLog
from .audit import AuditLog

__all__ = [
    "AccessKind",
    "AccessScope",
    "AccessType",
    "ExpirationType",
    "VerificationType",
    "User",
    "UserRole",
    "StoredFile",
    "Link",
    "generate_link_id",
    "link_allowed_users",
    "LinkAccessLog",
    "AuditLog",
]
