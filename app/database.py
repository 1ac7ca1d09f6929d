import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings, StorageBackend

logger = logging.getLogger(__name__)

Base = declarative_base()

# Dialects that honour the partial unique indexes guarding active appointment slots
PARTIAL_INDEX_DIALECTS = {"sqlite", "postgresql"}


class DurableStorage:
    """Storage backed by the configured database URL (SQLite or PostgreSQL)."""

    name = "durable"

    def __init__(self, url: str):
        backend = make_url(url).get_backend_name()
        if backend not in PARTIAL_INDEX_DIALECTS:
            raise ValueError(f"Unsupported database backend '{backend}', use sqlite or postgresql")
        connect_args = {"check_same_thread": False} if backend == "sqlite" else {}
        self.url = url
        self.engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)

    def ping(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))


class MemoryStorage:
    """Ephemeral in-process storage; data is lost when the process exits."""

    name = "memory"

    def __init__(self):
        self.url = "sqlite://"
        # A single shared connection keeps the in-memory database alive across sessions
        self.engine = create_engine(
            self.url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    def ping(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))


def select_storage(backend: StorageBackend, url: str):
    if backend == StorageBackend.MEMORY:
        logger.info("Using in-memory storage")
        return MemoryStorage()

    durable = DurableStorage(url)
    if backend == StorageBackend.DURABLE:
        logger.info("Using durable storage at %s", durable.engine.url.render_as_string(hide_password=True))
        return durable

    try:
        durable.ping()
    except OperationalError as e:
        logger.warning("Database connection failed (%s) - running with in-memory storage", e)
        durable.engine.dispose()
        return MemoryStorage()

    logger.info("Connected to durable storage at %s", durable.engine.url.render_as_string(hide_password=True))
    return durable


storage = select_storage(settings.STORAGE_BACKEND, settings.DATABASE_URL)
engine = storage.engine
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    # Import models so they register with Base.metadata
    from app.models import appointment, doctor, notification, user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
