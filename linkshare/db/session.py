from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from linkshare.core.config import get_settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    settings = get_settings()
    connect_args = {}
    if database_url.startswith("sqlite"):
        # writers wait on each other instead of failing with "database is locked"
        connect_args = {"check_same_thread": False, "timeout": settings.sqlite_busy_timeout_seconds}
    engine = create_engine(database_url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


_settings = get_settings()
engine = build_engine(_settings.database_url, echo=_settings.db_echo)
SessionLocal = build_session_factory(engine)
