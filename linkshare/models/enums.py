import enum


class ExpirationType(str, enum.Enum):
    NONE = "none"
    DURATION = "duration"
    DATE = "date"


class VerificationType(str, enum.Enum):
    NONE = "none"
    PASSWORD = "password"
    USERNAME = "username"


class AccessScope(str, enum.Enum):
    PUBLIC = "public"
    USERS = "users"
    SELECTED = "selected"


class AccessType(str, enum.Enum):
    """Strongest consumption a link permits."""
    INFO = "info"
    VIEW = "view"
    DOWNLOAD = "download"


class AccessKind(str, enum.Enum):
    """Consumption requested by the caller; one per public endpoint."""
    INFO = "info"
    VIEW = "view"
    DOWNLOAD = "download"
