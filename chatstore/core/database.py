from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from chatstore.core.config import settings

MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_store_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create a SQLite engine with foreign keys enforced on every connection."""
    url = url or settings.sqlalchemy_url
    echo = settings.debug if echo is None else echo
    in_memory = url in MEMORY_URLS

    if in_memory:
        # One shared connection, otherwise every checkout sees an empty database
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def uses_shared_connection(engine: Engine) -> bool:
    return isinstance(engine.pool, StaticPool)


def init_db(engine: Engine) -> None:
    import chatstore.models.conversation  # noqa: F401 - ensure models are registered
    SQLModel.metadata.create_all(engine)
