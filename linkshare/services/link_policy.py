"""Access decision for a shared link.

Checks run in a fixed order and stop at the first failure:

1. the link exists and is active (and so is the shared file)
2. the link has not expired
3. the access limit has not been reached
4. the link's capability covers the requested kind of access
5. the caller is inside the link's access scope
6. the presented credential matches the verification rule

Existence and activation come first so probing clients learn nothing about
a link's configuration. Nothing here touches the database; committing a
successful consumption is the store's job.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from linkshare.core import security
from linkshare.core.errors import (
    AccessForbidden,
    AccessLimitReached,
    AuthenticationRequired,
    CapabilityDenied,
    InvalidCredential,
    LinkExpired,
    LinkNotFound,
)
from linkshare.core.time import ensure_aware, utcnow
from linkshare.models import AccessKind, AccessScope, AccessType, ExpirationType, Link, User, VerificationType


# Exact per-endpoint matching: a view-only link never grants download and vice versa.
ALLOWED_ACCESS_TYPES = {
    AccessKind.INFO: {AccessType.INFO, AccessType.VIEW, AccessType.DOWNLOAD},
    AccessKind.VIEW: {AccessType.VIEW, AccessType.DOWNLOAD},
    AccessKind.DOWNLOAD: {AccessType.DOWNLOAD},
}


@dataclass(frozen=True)
class Credentials:
    password: str | None = None
    username: str | None = None


def expires_at(link: Link) -> datetime | None:
    if link.expiration_type == ExpirationType.DURATION:
        return ensure_aware(link.created_at_utc) + timedelta(seconds=link.expiration_seconds)
    if link.expiration_type == ExpirationType.DATE:
        return ensure_aware(link.expires_at_utc)
    return None


def is_expired(link: Link, now: datetime | None = None) -> bool:
    deadline = expires_at(link)
    if deadline is None:
        return False
    return (now or utcnow()) >= deadline


def is_access_limit_reached(link: Link) -> bool:
    return link.access_limit is not None and link.access_count >= link.access_limit


def _check_scope(link: Link, principal: User | None) -> None:
    if link.access_scope == AccessScope.PUBLIC:
        return
    if principal is None:
        raise AuthenticationRequired()
    if link.access_scope == AccessScope.SELECTED:
        if not any(user.id == principal.id for user in link.allowed_users):
            raise AccessForbidden()


def _username_matches(link: Link, username: str | None) -> bool:
    # Containment, not equality: "ali" matches allowed user "Alice".
    if not username:
        return False
    needle = username.lower()
    return any(needle in user.username.lower() for user in link.allowed_users)


def _check_verification(link: Link, credentials: Credentials) -> None:
    if link.verification_type == VerificationType.PASSWORD:
        if not credentials.password or not link.verification_secret_hash:
            raise InvalidCredential("Invalid password")
        if not security.verify_secret(credentials.password, link.verification_secret_hash):
            raise InvalidCredential("Invalid password")
    elif link.verification_type == VerificationType.USERNAME:
        if link.access_scope != AccessScope.SELECTED or not _username_matches(link, credentials.username):
            raise InvalidCredential("Invalid username")


def evaluate(
    link: Link | None,
    kind: AccessKind,
    principal: User | None = None,
    credentials: Credentials | None = None,
    now: datetime | None = None,
) -> Link:
    """Return the link if the access is permitted, raise the first failing check otherwise."""
    credentials = credentials or Credentials()

    if link is None or not link.is_active or link.file is None or not link.file.is_active:
        raise LinkNotFound()
    if is_expired(link, now):
        raise LinkExpired()
    if is_access_limit_reached(link):
        raise AccessLimitReached()
    if link.access_type not in ALLOWED_ACCESS_TYPES[kind]:
        raise CapabilityDenied()
    _check_scope(link, principal)
    _check_verification(link, credentials)
    return link
