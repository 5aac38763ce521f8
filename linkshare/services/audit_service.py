"""Owner activity trail for links (create, update, activation, delete)."""
import json
from typing import Any, Mapping

from sqlalchemy.orm import Session

from linkshare.core.time import utcnow
from linkshare.models import AuditLog


def _encode_details(details: Mapping[str, Any] | str | None) -> str | None:
    if details is None:
        return None
    if isinstance(details, str):
        details = {"message": details}
    # stable key order keeps rows diffable; datetimes and enums fall back to str
    return json.dumps(dict(details), default=str, sort_keys=True)


def log_audit(
    db: Session,
    action: str,
    actor_user_id: str | None = None,
    link_pk: str | None = None,
    details: Mapping[str, Any] | str | None = None,
):
    db.add(
        AuditLog(
            at_utc=utcnow(),
            action=action,
            actor_user_id=actor_user_id,
            link_pk=link_pk,
            details=_encode_details(details),
        )
    )
    db.commit()
