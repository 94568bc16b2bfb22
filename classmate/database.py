import logging
from datetime import timezone

from sqlalchemy_utils import database_exists, create_database
from sqlalchemy import create_engine, text, DateTime
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine.url import make_url

from classmate.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend, including SQLite"""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def build_engine(database_url: str):
    """Create an engine; in-memory SQLite shares a single connection."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=False  # Set to True for SQL debugging
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def ensure_database_exists():
    """
    Checks if the database exists, and creates it if it does not.
    """
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        return
    if not database_exists(settings.DATABASE_URL):
        create_database(settings.DATABASE_URL)
        logger.info(f"Database created: {url.database}")
    else:
        logger.info(f"Database already exists: {url.database}")


def init_db():
    ensure_database_exists()
    # Importing the package registers every model on Base.metadata
    import classmate.models  # noqa: F401
    from classmate.services.rbac_service import seed_permissions

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed_permissions(db)
        if created:
            logger.info(f"Seeded {created} permissions")
    finally:
        db.close()


def ping_db() -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
