import logging
from sqlalchemy import create_engine, event, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator
from salon_booking.core.config import settings
from salon_booking.utils.time import to_utc

logger = logging.getLogger(__name__)


database_url = settings.DATABASE_URL

if database_url and database_url.startswith("postgres://"):
    database_url = database_url.replace("postgres://", "postgresql://", 1)


engine_args = {
    "echo": settings.DEBUG,
    "pool_pre_ping": True,
    "pool_size": 10,
    "max_overflow": 20,
    "pool_recycle": 1800
}

if not database_url:
    database_url = "sqlite:///./salon_booking.db"
    logger.info("Development: Using SQLite")
    engine_args = {"connect_args": {"check_same_thread": False, "timeout": 30}}
else:
    logger.info("Using database backend: %s", database_url.split(":", 1)[0])


def enable_sqlite_write_locks(engine):
    """Starts every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite only opens a transaction at the first write, so a conflict check
    followed by an insert would not be atomic. Taking the write lock at BEGIN
    serialises writers the way SERIALIZABLE does on PostgreSQL.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_engine(database_url, **engine_args)
if engine.dialect.name == "sqlite":
    enable_sqlite_write_locks(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """DateTime column that always hands back timezone-aware UTC values.

    SQLite drops the offset on storage, so values are normalised to UTC on
    the way in and re-tagged on the way out.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return to_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return to_utc(value)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
