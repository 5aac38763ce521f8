from linkshare.db.init_db import seed_data
from linkshare.models import StoredFile, User, UserRole


def test_seed_data_runs_once(db):
    seed_data(db)
    seed_data(db)

    assert db.query(User).filter(User.role == UserRole.SUPERUSER).count() == 1
    alice = db.query(User).filter(User.username == "alice").one()
    files = db.query(StoredFile).all()
    assert [(file.owner_id, file.display_name) for file in files] == [(alice.id, "Welcome")]
