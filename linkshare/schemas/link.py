from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from linkshare.models import AccessKind, AccessScope, AccessType, VerificationType


class NoExpiration(BaseModel):
    type: Literal["none"] = "none"


class DurationExpiration(BaseModel):
    type: Literal["duration"] = "duration"
    seconds: int = Field(..., description="Lifetime in seconds, counted from link creation")


class DateExpiration(BaseModel):
    type: Literal["date"] = "date"
    expires_at: datetime


ExpirationRule = Annotated[
    Union[NoExpiration, DurationExpiration, DateExpiration],
    Field(discriminator="type"),
]


class NoVerification(BaseModel):
    type: Literal["none"] = "none"


class PasswordVerification(BaseModel):
    type: Literal["password"] = "password"
    secret: Optional[str] = Field(None, description="Required on create; omit on update to keep the stored one")


class UsernameVerification(BaseModel):
    type: Literal["username"] = "username"


VerificationRule = Annotated[
    Union[NoVerification, PasswordVerification, UsernameVerification],
    Field(discriminator="type"),
]


class PublicScope(BaseModel):
    type: Literal["public"] = "public"


class AuthenticatedScope(BaseModel):
    type: Literal["users"] = "users"


class SelectedScope(BaseModel):
    type: Literal["selected"] = "selected"
    allowed_user_ids: List[str] = Field(default_factory=list)


ScopeRule = Annotated[
    Union[PublicScope, AuthenticatedScope, SelectedScope],
    Field(discriminator="type"),
]


class LinkCreate(BaseModel):
    file_id: str
    custom_name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    expiration: ExpirationRule = Field(default_factory=NoExpiration)
    access_limit: Optional[int] = None
    verification: VerificationRule = Field(default_factory=NoVerification)
    scope: ScopeRule = Field(default_factory=PublicScope)
    access_type: AccessType = AccessType.INFO


class LinkUpdate(BaseModel):
    """Partial update: only fields present in the request body are changed.

    An explicit ``"access_limit": null`` removes the limit.
    """
    custom_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    expiration: Optional[ExpirationRule] = None
    access_limit: Optional[int] = None
    verification: Optional[VerificationRule] = None
    scope: Optional[ScopeRule] = None
    access_type: Optional[AccessType] = None


class ActiveUpdate(BaseModel):
    is_active: bool


class UserBrief(BaseModel):
    id: str
    username: str
    email: str

    model_config = {"from_attributes": True}


class FileBrief(BaseModel):
    id: str
    filename: str
    original_filename: str
    mimetype: str
    size: int


class ExpirationOut(BaseModel):
    type: str
    seconds: Optional[int] = None
    expires_at: Optional[datetime] = None


class LinkOut(BaseModel):
    id: str
    link_id: str
    custom_name: str
    description: str
    file: FileBrief
    created_by: UserBrief
    expiration: ExpirationOut
    access_limit: Optional[int]
    verification_type: VerificationType
    access_scope: AccessScope
    allowed_users: List[UserBrief]
    access_type: AccessType
    is_active: bool
    is_expired: bool
    favorite: bool
    access_count: int
    created_at_utc: datetime
    updated_at_utc: datetime
    last_accessed_at_utc: Optional[datetime]


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool


class LinkPage(BaseModel):
    links: List[LinkOut]
    pagination: Pagination


class AccessLogEntryOut(BaseModel):
    id: str
    sequence_number: int
    access_kind: AccessKind
    accessed_at_utc: datetime
    user: Optional[UserBrief]
    ip_address: Optional[str]
    user_agent: Optional[str]


class SharedFileInfo(BaseModel):
    id: str
    custom_filename: Optional[str]
    original_filename: str
    mimetype: str
    size: int


class SharedLinkInfo(BaseModel):
    link_id: str
    custom_name: str
    description: str
    access_type: AccessType
    file: SharedFileInfo


class LinkAccessResponse(BaseModel):
    success: bool = True
    link: SharedLinkInfo
