"""Consumption of shared links: resolve, evaluate, commit."""
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from linkshare.core.config import get_settings
from linkshare.core.errors import ConflictRetryable, LinkBusy, LinkShareError
from linkshare.models import AccessKind, Link, StoredFile, User

from . import link_policy, link_store
from .link_policy import Credentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGrant:
    link: Link
    file: StoredFile
    kind: AccessKind
    sequence_number: int


def access_link(
    db: Session,
    link_id: str,
    kind: AccessKind,
    principal: User | None = None,
    credentials: Credentials | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> AccessGrant:
    """
    Evaluate one access attempt and, when it is permitted, record it.

    A rejection raises the matching ``LinkShareError`` and leaves the link
    untouched. When the commit loses a race (the owner changed the link, or
    another consumption used up the last access) the link is read again and
    the whole evaluation repeats, up to ``consume_max_attempts`` times.
    """
    settings = get_settings()
    caller = principal.username if principal else "anonymous"

    for attempt in range(1, settings.consume_max_attempts + 1):
        link = link_store.get_by_public_id(db, link_id)
        try:
            link_policy.evaluate(link, kind, principal, credentials, now)
        except LinkShareError as exc:
            logger.info(f"Access to link {link_id} ({kind.value}) by {caller} rejected: {exc.code}")
            raise

        try:
            sequence_number = link_store.append_access_and_increment(
                db,
                link,
                kind,
                principal=principal,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        except ConflictRetryable:
            logger.info(f"Link {link_id} changed during access by {caller}, re-evaluating (attempt {attempt})")
            continue

        logger.info(f"Link {link_id} ({kind.value}) granted to {caller}, access #{sequence_number}")
        return AccessGrant(link=link, file=link.file, kind=kind, sequence_number=sequence_number)

    logger.warning(f"Giving up on link {link_id} after {settings.consume_max_attempts} conflicting attempts")
    raise LinkBusy()
