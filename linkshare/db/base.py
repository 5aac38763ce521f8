from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models so Alembic can discover metadata
from linkshare.models import (  # noqa: E402,F401
    audit,
    file,
    link,
    link_access_log,
    user,
)
