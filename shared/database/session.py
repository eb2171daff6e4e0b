from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

from .base import Base
from .models.article import Article  # noqa: F401
from .models.digest import Digest  # noqa: F401
from .models.user import User  # noqa: F401

logger = get_logger("shared.database")

settings = get_settings()
DATABASE_URL = settings.database.database_url

logger.info(f"▶︎ Connecting to database: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else DATABASE_URL}")


def engine_options(url: str) -> dict:
    """Pool settings for server databases; SQLite only needs cross-thread access."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def configure_sqlite(target_engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs nest properly under pysqlite."""

    @event.listens_for(target_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_engine(DATABASE_URL, echo=settings.database.echo, **engine_options(DATABASE_URL))
if DATABASE_URL.startswith("sqlite"):
    configure_sqlite(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db():
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise


def get_db_session():
    """Yield a session, rolling back whatever the request left uncommitted."""
    session = SessionLocal()
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error: {e}")
        session.rollback()
        raise
    finally:
        session.close()
