"""Persistence for shared links.

Every write to a link row is a guarded ``UPDATE``/``DELETE`` on that single
row, so owner edits and consumptions of the same link serialize in the
database instead of overwriting each other.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, insert, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from linkshare.core import security
from linkshare.core.config import get_settings
from linkshare.core.errors import (
    AccessForbidden,
    ConflictRetryable,
    DuplicateName,
    FileNotFound,
    InvalidConfiguration,
    LinkBusy,
    LinkNotFound,
)
from linkshare.core.time import ensure_aware, utcnow
from linkshare.models import (
    AccessKind,
    AccessScope,
    AccessType,
    ExpirationType,
    Link,
    LinkAccessLog,
    StoredFile,
    User,
    VerificationType,
    generate_link_id,
    link_allowed_users,
)
from linkshare.schemas.link import (
    AuthenticatedScope,
    DateExpiration,
    DurationExpiration,
    LinkCreate,
    LinkUpdate,
    PasswordVerification,
    SelectedScope,
    UsernameVerification,
)
from .audit_service import log_audit

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Link.created_at_utc,
    "updated_at": Link.updated_at_utc,
    "custom_name": Link.custom_name,
    "access_count": Link.access_count,
}

# largest value the Integer columns hold; also keeps created_at + duration inside datetime range
MAX_INTEGER = 2**31 - 1


@dataclass
class LinkConfig:
    """Owner-controlled settings of a link, merged and validated before every write."""
    custom_name: str
    description: str = ""
    expiration_type: ExpirationType = ExpirationType.NONE
    expiration_seconds: Optional[int] = None
    expires_at_utc: Optional[datetime] = None
    access_limit: Optional[int] = None
    verification_type: VerificationType = VerificationType.NONE
    verification_secret_hash: Optional[str] = None
    access_scope: AccessScope = AccessScope.PUBLIC
    allowed_user_ids: List[str] = field(default_factory=list)
    access_type: AccessType = AccessType.INFO

    def columns(self) -> dict:
        return {
            "custom_name": self.custom_name,
            "description": self.description,
            "expiration_type": self.expiration_type,
            "expiration_seconds": self.expiration_seconds,
            "expires_at_utc": self.expires_at_utc,
            "access_limit": self.access_limit,
            "verification_type": self.verification_type,
            "verification_secret_hash": self.verification_secret_hash,
            "access_scope": self.access_scope,
            "access_type": self.access_type,
        }


def _config_from_link(link: Link) -> LinkConfig:
    return LinkConfig(
        custom_name=link.custom_name,
        description=link.description or "",
        expiration_type=link.expiration_type,
        expiration_seconds=link.expiration_seconds,
        expires_at_utc=ensure_aware(link.expires_at_utc),
        access_limit=link.access_limit,
        verification_type=link.verification_type,
        verification_secret_hash=link.verification_secret_hash,
        access_scope=link.access_scope,
        allowed_user_ids=[user.id for user in link.allowed_users],
        access_type=link.access_type,
    )


def _apply_expiration(config: LinkConfig, rule) -> None:
    config.expiration_seconds = None
    config.expires_at_utc = None
    if isinstance(rule, DurationExpiration):
        config.expiration_type = ExpirationType.DURATION
        config.expiration_seconds = rule.seconds
    elif isinstance(rule, DateExpiration):
        config.expiration_type = ExpirationType.DATE
        config.expires_at_utc = ensure_aware(rule.expires_at)
    else:
        config.expiration_type = ExpirationType.NONE


def _apply_verification(config: LinkConfig, rule) -> None:
    if isinstance(rule, PasswordVerification):
        # keep the stored secret when switching password -> password without a new one
        if rule.secret:
            config.verification_secret_hash = security.hash_secret(rule.secret)
        elif config.verification_type != VerificationType.PASSWORD:
            config.verification_secret_hash = None
        config.verification_type = VerificationType.PASSWORD
    elif isinstance(rule, UsernameVerification):
        config.verification_type = VerificationType.USERNAME
        config.verification_secret_hash = None
    else:
        config.verification_type = VerificationType.NONE
        config.verification_secret_hash = None


def _apply_scope(config: LinkConfig, rule) -> None:
    if isinstance(rule, SelectedScope):
        config.access_scope = AccessScope.SELECTED
        config.allowed_user_ids = list(dict.fromkeys(rule.allowed_user_ids))
    elif isinstance(rule, AuthenticatedScope):
        config.access_scope = AccessScope.USERS
        config.allowed_user_ids = []
    else:
        config.access_scope = AccessScope.PUBLIC
        config.allowed_user_ids = []


def _validate(
    db: Session,
    config: LinkConfig,
    access_count: int = 0,
    check_future_date: bool = True,
) -> List[User]:
    """Check every cross-field rule; returns the resolved allowed users."""
    if not config.custom_name:
        raise InvalidConfiguration("Custom name is required")

    if config.expiration_type == ExpirationType.DURATION:
        if not config.expiration_seconds or config.expiration_seconds <= 0:
            raise InvalidConfiguration("Valid expiration duration is required")
        if config.expiration_seconds > MAX_INTEGER:
            raise InvalidConfiguration("Expiration duration is too long")
    elif config.expiration_type == ExpirationType.DATE:
        if config.expires_at_utc is None:
            raise InvalidConfiguration("Valid future expiration date is required")
        if check_future_date and config.expires_at_utc <= utcnow():
            raise InvalidConfiguration("Valid future expiration date is required")

    if config.access_limit is not None:
        if config.access_limit <= 0:
            raise InvalidConfiguration("Access limit must be a positive number")
        if config.access_limit > MAX_INTEGER:
            raise InvalidConfiguration("Access limit is too large")
        if config.access_limit < access_count:
            raise InvalidConfiguration("Access limit cannot be lower than the number of accesses already made")

    if config.verification_type == VerificationType.PASSWORD and not config.verification_secret_hash:
        raise InvalidConfiguration("Verification value is required when verification is enabled")

    if config.access_scope != AccessScope.SELECTED:
        if config.verification_type == VerificationType.USERNAME:
            raise InvalidConfiguration("Username verification requires access scope to be 'selected'.")
        return []

    if not config.allowed_user_ids:
        raise InvalidConfiguration("At least one user must be selected for selected access scope")
    users = db.query(User).filter(User.id.in_(config.allowed_user_ids)).all()
    if len(users) != len(config.allowed_user_ids):
        raise InvalidConfiguration("One or more selected users do not exist")
    return users


def _name_taken(db: Session, owner_id: str, custom_name: str, exclude_pk: str | None = None) -> bool:
    query = db.query(Link.id).filter(Link.created_by == owner_id, Link.custom_name == custom_name)
    if exclude_pk:
        query = query.filter(Link.id != exclude_pk)
    return query.first() is not None


def _authorize(link: Link, actor: User) -> None:
    if link.created_by != actor.id and not actor.is_superuser:
        raise AccessForbidden("Access denied")


def _link_query(db: Session):
    return db.query(Link).options(
        joinedload(Link.file),
        joinedload(Link.owner),
        selectinload(Link.allowed_users),
    )


def get_by_public_id(db: Session, link_id: str) -> Link | None:
    """Latest committed state of the link behind a public identifier."""
    return (
        _link_query(db)
        .filter(Link.link_id == link_id)
        .execution_options(populate_existing=True)
        .first()
    )


def get_link(db: Session, pk: str) -> Link:
    link = _link_query(db).filter(Link.id == pk).execution_options(populate_existing=True).first()
    if not link:
        raise LinkNotFound("Link not found")
    return link


def get_owned_link(db: Session, pk: str, actor: User) -> Link:
    link = get_link(db, pk)
    _authorize(link, actor)
    return link


def create_link(db: Session, owner: User, body: LinkCreate) -> Link:
    file = (
        db.query(StoredFile)
        .filter(StoredFile.id == body.file_id, StoredFile.is_active.is_(True))
        .first()
    )
    if not file:
        raise FileNotFound()

    config = LinkConfig(
        custom_name=body.custom_name.strip(),
        description=body.description,
        access_limit=body.access_limit,
        access_type=body.access_type,
    )
    _apply_expiration(config, body.expiration)
    _apply_verification(config, body.verification)
    _apply_scope(config, body.scope)
    allowed_users = _validate(db, config)

    if _name_taken(db, owner.id, config.custom_name):
        raise DuplicateName()

    now = utcnow()
    link = Link(
        link_id=generate_link_id(),
        file_id=file.id,
        created_by=owner.id,
        created_at_utc=now,
        updated_at_utc=now,
        **config.columns(),
    )
    link.allowed_users = allowed_users
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if _name_taken(db, owner.id, config.custom_name):
            raise DuplicateName()
        raise

    logger.info(f"User {owner.username} created link {link.id} for file {file.id}")
    log_audit(db, action="LINK_CREATED", actor_user_id=owner.id, link_pk=link.id, details={"customName": link.custom_name})
    return get_link(db, link.id)


def update_link(db: Session, pk: str, body: LinkUpdate, actor: User) -> Link:
    """Merge ``body`` into the stored configuration and commit it if the row is unchanged since it was read."""
    fields = body.model_fields_set
    settings = get_settings()

    for attempt in range(1, settings.consume_max_attempts + 1):
        link = get_owned_link(db, pk, actor)
        config = _config_from_link(link)

        if "custom_name" in fields and body.custom_name is not None:
            config.custom_name = body.custom_name.strip()
        if "description" in fields and body.description is not None:
            config.description = body.description
        if "expiration" in fields and body.expiration is not None:
            _apply_expiration(config, body.expiration)
        if "access_limit" in fields:
            config.access_limit = body.access_limit
        if "verification" in fields and body.verification is not None:
            _apply_verification(config, body.verification)
        if "scope" in fields and body.scope is not None:
            _apply_scope(config, body.scope)
        if "access_type" in fields and body.access_type is not None:
            config.access_type = body.access_type

        allowed_users = _validate(
            db,
            config,
            access_count=link.access_count,
            check_future_date="expiration" in fields,
        )
        if config.custom_name != link.custom_name and _name_taken(db, link.created_by, config.custom_name, link.id):
            raise DuplicateName()

        stmt = update(Link).where(Link.id == link.id, Link.version == link.version)
        if config.access_limit is not None:
            stmt = stmt.where(Link.access_count <= config.access_limit)
        result = db.execute(
            stmt.values(**config.columns(), version=Link.version + 1, updated_at_utc=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.info(f"Link {pk} changed while being updated, retrying (attempt {attempt})")
            continue

        db.execute(delete(link_allowed_users).where(link_allowed_users.c.link_pk == link.id))
        if allowed_users:
            db.execute(
                insert(link_allowed_users),
                [{"link_pk": link.id, "user_id": user.id} for user in allowed_users],
            )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateName()

        log_audit(db, action="LINK_UPDATED", actor_user_id=actor.id, link_pk=link.id, details={"customName": config.custom_name})
        return get_link(db, pk)

    raise LinkBusy()


def set_active(db: Session, pk: str, active: bool, actor: User) -> Link:
    get_owned_link(db, pk, actor)
    return _write_active(db, pk, active, actor)


def toggle_active(db: Session, pk: str, actor: User) -> Link:
    get_owned_link(db, pk, actor)
    return _write_active(db, pk, ~Link.is_active, actor)


def _write_active(db: Session, pk: str, value, actor: User) -> Link:
    result = db.execute(
        update(Link)
        .where(Link.id == pk)
        .values(is_active=value, version=Link.version + 1, updated_at_utc=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise LinkNotFound("Link not found")
    db.commit()

    link = get_link(db, pk)
    logger.info(f"Link {pk} {'activated' if link.is_active else 'deactivated'} by {actor.username}")
    log_audit(
        db,
        action="LINK_ACTIVATED" if link.is_active else "LINK_DEACTIVATED",
        actor_user_id=actor.id,
        link_pk=pk,
    )
    return link


def toggle_favorite(db: Session, pk: str, actor: User) -> Link:
    get_owned_link(db, pk, actor)
    result = db.execute(
        update(Link)
        .where(Link.id == pk)
        .values(favorite=~Link.favorite)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise LinkNotFound("Link not found")
    db.commit()
    return get_link(db, pk)


def delete_link(db: Session, pk: str, actor: User) -> None:
    link = get_owned_link(db, pk, actor)
    custom_name = link.custom_name

    # the link row goes first so in-flight consumptions fail on it rather than on the log
    result = db.execute(delete(Link).where(Link.id == pk))
    if result.rowcount != 1:
        db.rollback()
        raise LinkNotFound("Link not found")
    db.execute(delete(LinkAccessLog).where(LinkAccessLog.link_pk == pk))
    db.execute(delete(link_allowed_users).where(link_allowed_users.c.link_pk == pk))
    db.commit()

    logger.info(f"Link {pk} deleted by {actor.username}")
    log_audit(db, action="LINK_DELETED", actor_user_id=actor.id, link_pk=pk, details={"customName": custom_name})


def append_access_and_increment(
    db: Session,
    link: Link,
    kind: AccessKind,
    principal: User | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> int:
    """Record one consumption of ``link`` as evaluated; returns its sequence number.

    The counter update only applies if the link is still active, under its
    limit and at the configuration version the decision was made against.
    Counter, log row and file download count commit together or not at all.
    """
    # rollback expires the instance, so read what is needed up front
    link_pk, version, file_id = link.id, link.version, link.file_id
    now = utcnow()
    result = db.execute(
        update(Link)
        .where(
            Link.id == link_pk,
            Link.version == version,
            Link.is_active.is_(True),
            or_(Link.access_limit.is_(None), Link.access_count < Link.access_limit),
        )
        .values(access_count=Link.access_count + 1, last_accessed_at_utc=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        if db.query(Link.id).filter(Link.id == link_pk).first() is None:
            raise LinkNotFound()
        raise ConflictRetryable()

    sequence_number = db.query(Link.access_count).filter(Link.id == link_pk).scalar()
    db.add(
        LinkAccessLog(
            link_pk=link_pk,
            user_id=principal.id if principal else None,
            access_kind=kind,
            sequence_number=sequence_number,
            accessed_at_utc=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    if kind in (AccessKind.VIEW, AccessKind.DOWNLOAD):
        db.execute(
            update(StoredFile)
            .where(StoredFile.id == file_id)
            .values(download_count=StoredFile.download_count + 1)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    return sequence_number


def list_links(
    db: Session,
    owner_id: str | None = None,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    active: bool | None = None,
    favorite: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[List[Link], int]:
    query = db.query(Link)
    if owner_id:
        query = query.filter(Link.created_by == owner_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Link.custom_name.ilike(pattern), Link.description.ilike(pattern)))
    if active is not None:
        query = query.filter(Link.is_active.is_(active))
    if favorite is not None:
        query = query.filter(Link.favorite.is_(favorite))

    total = query.with_entities(func.count(Link.id)).scalar() or 0

    column = SORTABLE_FIELDS.get(sort_by, Link.created_at_utc)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    links = (
        query.options(joinedload(Link.file), joinedload(Link.owner), selectinload(Link.allowed_users))
        .order_by(ordering, Link.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return links, total


def list_recent_links(db: Session, owner_id: str, limit: int = 10) -> List[Link]:
    return (
        _link_query(db)
        .filter(Link.created_by == owner_id)
        .order_by(Link.created_at_utc.desc())
        .limit(limit)
        .all()
    )


def list_access_log(db: Session, pk: str, actor: User) -> List[LinkAccessLog]:
    get_owned_link(db, pk, actor)
    return (
        db.query(LinkAccessLog)
        .options(joinedload(LinkAccessLog.user))
        .filter(LinkAccessLog.link_pk == pk)
        .order_by(LinkAccessLog.sequence_number.asc())
        .all()
    )
