"""API endpoints for managing shared links (owner and superuser)."""
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from linkshare.api.deps import get_current_user, get_db, require_role
from linkshare.models import Link, LinkAccessLog, User, UserRole
from linkshare.schemas.link import (
    AccessLogEntryOut,
    ActiveUpdate,
    ExpirationOut,
    FileBrief,
    LinkCreate,
    LinkOut,
    LinkPage,
    LinkUpdate,
    Pagination,
    UserBrief,
)
from linkshare.services import link_policy, link_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/links", tags=["links"])


def to_link_out(link: Link) -> LinkOut:
    file = link.file
    return LinkOut(
        id=link.id,
        link_id=link.link_id,
        custom_name=link.custom_name,
        description=link.description or "",
        file=FileBrief(
            id=file.id,
            filename=file.display_name,
            original_filename=file.original_filename,
            mimetype=file.mimetype,
            size=file.size,
        ),
        created_by=UserBrief.model_validate(link.owner),
        expiration=ExpirationOut(
            type=link.expiration_type.value,
            seconds=link.expiration_seconds,
            expires_at=link_policy.expires_at(link),
        ),
        access_limit=link.access_limit,
        verification_type=link.verification_type,
        access_scope=link.access_scope,
        allowed_users=[UserBrief.model_validate(user) for user in link.allowed_users],
        access_type=link.access_type,
        is_active=link.is_active,
        is_expired=link_policy.is_expired(link),
        favorite=link.favorite,
        access_count=link.access_count,
        created_at_utc=link.created_at_utc,
        updated_at_utc=link.updated_at_utc,
        last_accessed_at_utc=link.last_accessed_at_utc,
    )


def _page(links: List[Link], total: int, page: int, limit: int) -> LinkPage:
    return LinkPage(
        links=[to_link_out(link) for link in links],
        pagination=Pagination(
            current=page,
            pages=math.ceil(total / limit) if total else 0,
            total=total,
            has_next=page * limit < total,
            has_prev=page > 1,
        ),
    )


def _to_log_entry(entry: LinkAccessLog) -> AccessLogEntryOut:
    return AccessLogEntryOut(
        id=entry.id,
        sequence_number=entry.sequence_number,
        access_kind=entry.access_kind,
        accessed_at_utc=entry.accessed_at_utc,
        user=UserBrief.model_validate(entry.user) if entry.user else None,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
    )


@router.post("", response_model=LinkOut, status_code=201)
def create_link(body: LinkCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return to_link_out(link_store.create_link(db, user, body))


@router.get("", response_model=LinkPage)
def list_my_links(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    active: Optional[bool] = None,
    favorite: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    links, total = link_store.list_links(
        db,
        owner_id=user.id,
        page=page,
        limit=limit,
        search=search,
        active=active,
        favorite=favorite,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return _page(links, total, page, limit)


@router.get("/recent", response_model=List[LinkOut])
def list_recent_links(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [to_link_out(link) for link in link_store.list_recent_links(db, user.id)]


@router.get("/admin/all", response_model=LinkPage)
def list_all_links(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = "",
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role(UserRole.SUPERUSER)),
):
    links, total = link_store.list_links(
        db, page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return _page(links, total, page, limit)


@router.put("/{link_pk}", response_model=LinkOut)
def update_link(
    link_pk: str,
    body: LinkUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return to_link_out(link_store.update_link(db, link_pk, body, user))


@router.patch("/{link_pk}/toggle", response_model=LinkOut)
def toggle_link(link_pk: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return to_link_out(link_store.toggle_active(db, link_pk, user))


@router.put("/{link_pk}/active", response_model=LinkOut)
def set_link_active(
    link_pk: str,
    body: ActiveUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return to_link_out(link_store.set_active(db, link_pk, body.is_active, user))


@router.patch("/{link_pk}/favorite", response_model=LinkOut)
def toggle_favorite(link_pk: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return to_link_out(link_store.toggle_favorite(db, link_pk, user))


@router.delete("/{link_pk}")
def delete_link(link_pk: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    link_store.delete_link(db, link_pk, user)
    return {"success": True, "message": "Link deleted successfully"}


@router.get("/{link_pk}/access-log", response_model=List[AccessLogEntryOut])
def get_access_log(link_pk: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [_to_log_entry(entry) for entry in link_store.list_access_log(db, link_pk, user)]
