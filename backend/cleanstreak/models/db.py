from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Config
from .base import Base  # shared Base, so create_all sees every model
from . import user  # noqa: F401, registers the model on the metadata
from . import daily_log  # noqa: F401
from . import transaction  # noqa: F401
from . import money_event  # noqa: F401
from . import prize  # noqa: F401
from . import daily_counters  # noqa: F401
from . import motivation_quote  # noqa: F401


def _build_engine(url: str) -> Engine:
    if url.startswith('sqlite'):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection, otherwise every session sees an empty database
            options["poolclass"] = StaticPool
            return create_engine(url, echo=Config.SQL_ECHO, future=True, **options)
        options["connect_args"]["timeout"] = 15
        sqlite_engine = create_engine(url, echo=Config.SQL_ECHO, future=True, **options)
        _serialize_sqlite_writers(sqlite_engine)
        return sqlite_engine
    return create_engine(
        url,
        echo=Config.SQL_ECHO,
        future=True,
        pool_pre_ping=True,  # ping before checkout, reconnect when stale
        pool_recycle=1800,   # recycle before MySQL wait_timeout drops idle connections
        connect_args={"connect_timeout": 10},
    )


def _serialize_sqlite_writers(sqlite_engine: Engine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLite has no SELECT ... FOR UPDATE. Taking the write lock at BEGIN makes
    per-user read-then-write units run one after the other, as row locks do
    on MySQL.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = _build_engine(Config.SQLALCHEMY_DATABASE_URI)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def configure_engine(url: str) -> Engine:
    """Point the session factory at another database (tests, scripts)."""
    global engine
    engine.dispose()
    engine = _build_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    """Create tables for all SQLAlchemy models defined in the project."""
    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    Base.metadata.drop_all(bind=engine)
