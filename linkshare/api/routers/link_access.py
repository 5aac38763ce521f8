"""Public endpoints that consume a shared link: info, inline view and download."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from linkshare.api.deps import get_db, get_optional_user
from linkshare.models import AccessKind, User
from linkshare.schemas.link import LinkAccessResponse, SharedFileInfo, SharedLinkInfo
from linkshare.services import access_service, storage
from linkshare.services.access_service import AccessGrant
from linkshare.services.link_policy import Credentials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/links", tags=["link-access"])


def _consume(
    db: Session,
    request: Request,
    link_id: str,
    kind: AccessKind,
    user: User | None,
    password: str | None,
    username: str | None,
) -> AccessGrant:
    return access_service.access_link(
        db,
        link_id,
        kind,
        principal=user,
        credentials=Credentials(password=password, username=username),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _file_response(grant: AccessGrant, disposition: str) -> FileResponse:
    file = grant.file
    try:
        path = storage.resolve_path(file)
    except storage.StorageUnavailable as exc:
        logger.error(f"Granted link {grant.link.link_id} but storage failed: {exc}")
        raise HTTPException(status_code=404, detail="File not found in storage")
    return FileResponse(
        path,
        media_type=file.mimetype,
        filename=file.original_filename,
        content_disposition_type=disposition,
    )


@router.get("/access/{link_id}", response_model=LinkAccessResponse)
def access_link(
    link_id: str,
    request: Request,
    password: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """Describe the shared file; counts as one access."""
    grant = _consume(db, request, link_id, AccessKind.INFO, user, password, username)
    link, file = grant.link, grant.file
    return LinkAccessResponse(
        link=SharedLinkInfo(
            link_id=link.link_id,
            custom_name=link.custom_name,
            description=link.description or "",
            access_type=link.access_type,
            file=SharedFileInfo(
                id=file.id,
                custom_filename=file.custom_filename,
                original_filename=file.original_filename,
                mimetype=file.mimetype,
                size=file.size,
            ),
        )
    )


@router.get("/view/{link_id}")
def view_link(
    link_id: str,
    request: Request,
    password: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    grant = _consume(db, request, link_id, AccessKind.VIEW, user, password, username)
    return _file_response(grant, "inline")


@router.get("/download/{link_id}")
def download_link(
    link_id: str,
    request: Request,
    password: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    grant = _consume(db, request, link_id, AccessKind.DOWNLOAD, user, password, username)
    return _file_response(grant, "attachment")
