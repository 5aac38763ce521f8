from sqlalchemy.orm import Session

from linkshare.models import StoredFile, User, UserRole


def seed_data(db: Session):
    """Create sample users and a file for quick local testing."""
    # Only seed if there are no superusers; otherwise, respect existing data.
    if db.query(User).filter(User.role == UserRole.SUPERUSER).first():
        return

    admin = User(username="admin", email="admin@example.com", role=UserRole.SUPERUSER, is_active=True)
    alice = User(username="alice", email="alice@example.com", role=UserRole.USER, is_active=True)
    db.add_all([admin, alice])
    db.commit()
    db.refresh(alice)

    db.add(
        StoredFile(
            owner_id=alice.id,
            original_filename="welcome.txt",
            custom_filename="Welcome",
            mimetype="text/plain",
            size=0,
            storage_ref="welcome.txt",
        )
    )
    db.commit()
