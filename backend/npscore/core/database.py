from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from npscore.core.config import Settings

# Base class for models
Base = declarative_base()


def normalize_database_url(db_url: str) -> str:
    # Render uses postgres:// but SQLAlchemy + psycopg3 needs postgresql+psycopg://
    if db_url.startswith("postgres://"):
        return "postgresql+psycopg://" + db_url[len("postgres://"):]
    if db_url.startswith("postgresql://") and "+psycopg" not in db_url:
        return "postgresql+psycopg://" + db_url[len("postgresql://"):]
    return db_url


def _configure_sqlite(engine):
    """SQLite has no row locks, so every transaction takes the write lock up front."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's implicit one
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(db_url: str, echo: bool = False, pool_size: int = 5, max_overflow: int = 10):
    db_url = normalize_database_url(db_url)

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, echo=echo, **kwargs)
        _configure_sqlite(engine)
        return engine

    return create_engine(
        db_url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
    )


def create_engine_from_settings(settings: Settings):
    return create_db_engine(
        settings.DATABASE_URL,
        echo=settings.SQL_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


def create_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
