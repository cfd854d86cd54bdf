from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings

# Dashboard slices read concurrently; give writers a moment before "database is locked".
SQLITE_BUSY_TIMEOUT_MS = 5000


def build_engine(database_url: str, pool_size: Optional[int] = None) -> Engine:
    """Engine shared by request sessions, dashboard slices and the scheduler.

    SQLite connections are handed across threads by the dashboard's worker
    pool, so thread checks are off and every connection gets the pragmas
    below. Other backends get a pool large enough for one connection per
    dashboard slice.
    """
    if database_url.startswith("sqlite"):
        eng = create_engine(database_url, connect_args={"check_same_thread": False})
        event.listen(eng, "connect", enable_sqlite_pragmas)
        return eng
    kwargs: dict[str, object] = {"pool_pre_ping": True}
    if pool_size:
        kwargs["pool_size"] = pool_size
    return create_engine(database_url, **kwargs)


def enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS};")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def build_session_factory(eng: Engine) -> sessionmaker:
    # Rows are serialised after commit, so keep loaded attributes.
    return sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)


_settings = get_settings()
engine = build_engine(_settings.database_url, pool_size=_settings.dashboard_workers)
SessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Commit on success, roll back on any error. Used outside request handling."""
    session: Session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
