from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from petcare.core import config


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def enforce_foreign_keys(target: Engine) -> Engine:
    """SQLite ignores REFERENCES clauses unless each connection opts in."""
    if target.dialect.name == "sqlite":

        @event.listens_for(target, "connect")
        def enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return target


engine = enforce_foreign_keys(
    create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_schema(bind=None) -> None:
    # Model modules register their tables on Base when imported.
    from petcare.models import appointment, pet, service, session, slot, user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
