import os

os.environ.setdefault("LINKSHARE_JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("LINKSHARE_JWT_ISSUER", "linkshare-tests")
os.environ.setdefault("LINKSHARE_DATABASE_URL", "sqlite://")
os.environ.setdefault("LINKSHARE_ENABLE_DOCS", "false")

import pytest

from linkshare.core import security
from linkshare.db.base import Base
from linkshare.db.session import build_engine, build_session_factory
from linkshare.models import (
    AccessScope,
    AccessType,
    ExpirationType,
    Link,
    StoredFile,
    User,
    UserRole,
    VerificationType,
    generate_link_id,
)


@pytest.fixture()
def engine(tmp_path):
    # file-backed so separate sessions and threads see the same database
    engine = build_engine(f"sqlite:///{tmp_path / 'linkshare-test.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username, role=UserRole.USER):
    user = User(username=username, email=f"{username}@example.com", role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_file(db, owner, storage_ref="report.pdf", is_active=True):
    file = StoredFile(
        owner_id=owner.id,
        original_filename="report.pdf",
        custom_filename="Quarterly report",
        mimetype="application/pdf",
        size=1234,
        storage_ref=storage_ref,
        is_active=is_active,
    )
    db.add(file)
    db.commit()
    db.refresh(file)
    return file


def make_link(db, owner, file, allowed_users=(), password=None, **columns):
    """Insert a link row directly, bypassing the store's validation."""
    values = {
        "custom_name": "shared",
        "expiration_type": ExpirationType.NONE,
        "access_type": AccessType.INFO,
        "access_scope": AccessScope.PUBLIC,
        "verification_type": VerificationType.NONE,
    }
    values.update(columns)
    if password is not None:
        values["verification_type"] = VerificationType.PASSWORD
        values["verification_secret_hash"] = security.hash_secret(password)
    link = Link(link_id=generate_link_id(), file_id=file.id, created_by=owner.id, **values)
    link.allowed_users = list(allowed_users)
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


@pytest.fixture()
def owner(db):
    return make_user(db, "owner")


@pytest.fixture()
def shared_file(db, owner):
    return make_file(db, owner)
