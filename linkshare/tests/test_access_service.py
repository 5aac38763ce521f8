import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from conftest import make_link, make_user
from linkshare.core.errors import (
    AccessForbidden,
    AccessLimitReached,
    AuthenticationRequired,
    CapabilityDenied,
    ConflictRetryable,
    InvalidCredential,
    LinkBusy,
    LinkExpired,
    LinkNotFound,
    LinkShareError,
)
from linkshare.core.time import ensure_aware
from linkshare.models import (
    AccessKind,
    AccessScope,
    AccessType,
    ExpirationType,
    Link,
    LinkAccessLog,
    VerificationType,
)
from linkshare.services import access_service, link_store
from linkshare.services.access_service import AccessGrant
from linkshare.services.link_policy import Credentials


def stored_state(session_factory, link_pk):
    session = session_factory()
    try:
        count = session.query(Link.access_count).filter(Link.id == link_pk).scalar()
        entries = session.query(LinkAccessLog).filter(LinkAccessLog.link_pk == link_pk).count()
        return count, entries
    finally:
        session.close()


def consume_concurrently(session_factory, link_id, kind, attempts):
    barrier = threading.Barrier(attempts)

    def attempt(_):
        session = session_factory()
        try:
            barrier.wait()
            return access_service.access_link(session, link_id, kind)
        except LinkShareError as exc:
            return exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        return list(pool.map(attempt, range(attempts)))


def test_info_only_public_link(db, owner, shared_file):
    link = make_link(db, owner, shared_file, access_type=AccessType.INFO)

    with pytest.raises(CapabilityDenied):
        access_service.access_link(db, link.link_id, AccessKind.DOWNLOAD)

    grant = access_service.access_link(db, link.link_id, AccessKind.INFO)
    assert isinstance(grant, AccessGrant)
    assert grant.file.id == shared_file.id
    assert grant.sequence_number == 1


def test_duration_link_expires_after_sixty_seconds(db, owner, shared_file):
    link = make_link(db, owner, shared_file, expiration_type=ExpirationType.DURATION, expiration_seconds=60)
    created = ensure_aware(link.created_at_utc)

    with pytest.raises(LinkExpired):
        access_service.access_link(db, link.link_id, AccessKind.INFO, now=created + timedelta(seconds=61))


def test_two_simultaneous_downloads_of_single_use_link(db, session_factory, owner, shared_file):
    link = make_link(db, owner, shared_file, access_type=AccessType.DOWNLOAD, access_limit=1)

    results = consume_concurrently(session_factory, link.link_id, AccessKind.DOWNLOAD, 2)

    assert sum(isinstance(result, AccessGrant) for result in results) == 1
    assert sum(isinstance(result, AccessLimitReached) for result in results) == 1
    assert stored_state(session_factory, link.id) == (1, 1)


def test_limit_holds_under_many_concurrent_attempts(db, session_factory, owner, shared_file):
    link = make_link(db, owner, shared_file, access_type=AccessType.DOWNLOAD, access_limit=3)

    results = consume_concurrently(session_factory, link.link_id, AccessKind.DOWNLOAD, 8)

    grants = [result for result in results if isinstance(result, AccessGrant)]
    assert len(grants) == 3
    assert all(isinstance(result, (AccessGrant, AccessLimitReached)) for result in results)
    assert sorted(grant.sequence_number for grant in grants) == [1, 2, 3]
    assert stored_state(session_factory, link.id) == (3, 3)


def test_selected_scope_with_username_verification(db, owner, shared_file):
    user_a = make_user(db, "user-a")
    user_b = make_user(db, "user-b")
    link = make_link(
        db,
        owner,
        shared_file,
        allowed_users=[user_a],
        access_scope=AccessScope.SELECTED,
        verification_type=VerificationType.USERNAME,
    )

    with pytest.raises(AuthenticationRequired):
        access_service.access_link(db, link.link_id, AccessKind.INFO)
    with pytest.raises(AccessForbidden):
        access_service.access_link(db, link.link_id, AccessKind.INFO, principal=user_b)

    grant = access_service.access_link(
        db, link.link_id, AccessKind.INFO, principal=user_a, credentials=Credentials(username="user-a")
    )
    assert grant.sequence_number == 1
    entry = db.query(LinkAccessLog).filter(LinkAccessLog.link_pk == link.id).one()
    assert entry.user_id == user_a.id


def test_password_link_logs_exactly_one_entry(db, owner, shared_file):
    link = make_link(db, owner, shared_file, password="secret")

    with pytest.raises(InvalidCredential):
        access_service.access_link(db, link.link_id, AccessKind.INFO, credentials=Credentials(password="wrong"))
    assert db.query(LinkAccessLog).filter(LinkAccessLog.link_pk == link.id).count() == 0

    access_service.access_link(
        db,
        link.link_id,
        AccessKind.INFO,
        credentials=Credentials(password="secret"),
        ip_address="203.0.113.9",
    )
    entries = db.query(LinkAccessLog).filter(LinkAccessLog.link_pk == link.id).all()
    assert len(entries) == 1
    assert entries[0].ip_address == "203.0.113.9"
    assert entries[0].access_kind == AccessKind.INFO


@pytest.mark.parametrize(
    "columns, kind, expected",
    [
        ({"is_active": False}, AccessKind.INFO, LinkNotFound),
        ({"expiration_type": ExpirationType.DURATION, "expiration_seconds": 1}, AccessKind.INFO, LinkExpired),
        ({"access_limit": 2, "access_count": 2}, AccessKind.INFO, AccessLimitReached),
        ({"access_type": AccessType.VIEW}, AccessKind.DOWNLOAD, CapabilityDenied),
        ({"access_scope": AccessScope.USERS}, AccessKind.INFO, AuthenticationRequired),
        ({"password": "secret"}, AccessKind.INFO, InvalidCredential),
    ],
)
def test_rejection_leaves_link_untouched(db, session_factory, owner, shared_file, columns, kind, expected):
    link = make_link(db, owner, shared_file, **columns)
    before = stored_state(session_factory, link.id)
    later = ensure_aware(link.created_at_utc) + timedelta(seconds=5)

    with pytest.raises(expected):
        access_service.access_link(db, link.link_id, kind, now=later)

    assert stored_state(session_factory, link.id) == before
    db.refresh(shared_file)
    assert shared_file.download_count == 0


def test_unknown_link_id(db):
    with pytest.raises(LinkNotFound):
        access_service.access_link(db, "f" * 32, AccessKind.INFO)


def test_deleted_link_is_not_found(db, owner, shared_file):
    link = make_link(db, owner, shared_file)
    link_store.delete_link(db, link.id, owner)

    with pytest.raises(LinkNotFound):
        access_service.access_link(db, link.link_id, AccessKind.INFO)


def test_delete_between_read_and_commit(session_factory, db, owner, shared_file):
    link = make_link(db, owner, shared_file)
    consumer = session_factory()
    try:
        evaluated = link_store.get_by_public_id(consumer, link.link_id)
        link_store.delete_link(db, link.id, owner)

        with pytest.raises(LinkNotFound):
            link_store.append_access_and_increment(consumer, evaluated, AccessKind.INFO)
    finally:
        consumer.close()


def test_owner_change_between_read_and_commit_forces_reevaluation(session_factory, db, owner, shared_file):
    link = make_link(db, owner, shared_file)
    consumer = session_factory()
    try:
        evaluated = link_store.get_by_public_id(consumer, link.link_id)
        link_store.toggle_active(db, link.id, owner)
        link_store.toggle_active(db, link.id, owner)

        with pytest.raises(ConflictRetryable):
            link_store.append_access_and_increment(consumer, evaluated, AccessKind.INFO)
        assert stored_state(session_factory, link.id) == (0, 0)

        # a fresh read sees the new version and commits
        grant = access_service.access_link(consumer, link.link_id, AccessKind.INFO)
        assert grant.sequence_number == 1
    finally:
        consumer.close()


def test_deactivated_between_read_and_commit(session_factory, db, owner, shared_file):
    link = make_link(db, owner, shared_file)
    consumer = session_factory()
    try:
        evaluated = link_store.get_by_public_id(consumer, link.link_id)
        link_store.set_active(db, link.id, False, owner)

        with pytest.raises(ConflictRetryable):
            link_store.append_access_and_increment(consumer, evaluated, AccessKind.INFO)
        with pytest.raises(LinkNotFound):
            access_service.access_link(consumer, link.link_id, AccessKind.INFO)
    finally:
        consumer.close()


def test_gives_up_after_repeated_conflicts(db, owner, shared_file, monkeypatch):
    link = make_link(db, owner, shared_file)
    calls = []

    def always_conflicting(*args, **kwargs):
        calls.append(1)
        raise ConflictRetryable()

    monkeypatch.setattr(link_store, "append_access_and_increment", always_conflicting)

    with pytest.raises(LinkBusy):
        access_service.access_link(db, link.link_id, AccessKind.INFO)
    assert len(calls) == 3


def test_view_and_download_count_as_file_downloads(db, owner, shared_file):
    link = make_link(db, owner, shared_file, access_type=AccessType.DOWNLOAD)

    access_service.access_link(db, link.link_id, AccessKind.INFO)
    access_service.access_link(db, link.link_id, AccessKind.VIEW)
    access_service.access_link(db, link.link_id, AccessKind.DOWNLOAD)

    db.refresh(shared_file)
    assert shared_file.download_count == 2
    assert link_store.get_link(db, link.id).access_count == 3


def test_delete_while_consuming_reports_not_found(session_factory, db, owner, shared_file, monkeypatch):
    link = make_link(db, owner, shared_file, access_type=AccessType.DOWNLOAD)
    read_link = link_store.get_by_public_id

    def read_then_delete(session, link_id):
        found = read_link(session, link_id)
        owner_session = session_factory()
        try:
            link_store.delete_link(owner_session, link.id, owner)
        finally:
            owner_session.close()
        return found

    monkeypatch.setattr(link_store, "get_by_public_id", read_then_delete)
    consumer = session_factory()
    try:
        with pytest.raises(LinkNotFound):
            access_service.access_link(consumer, link.link_id, AccessKind.DOWNLOAD)
    finally:
        consumer.close()

    assert stored_state(session_factory, link.id) == (None, 0)
    db.refresh(shared_file)
    assert shared_file.download_count == 0
