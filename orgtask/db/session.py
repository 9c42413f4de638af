"""
Database session management
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from orgtask.core.config import settings


def configure_sqlite(engine: Engine) -> None:
    """
    Enable foreign keys and let SQLAlchemy own transaction begin on SQLite.

    pysqlite's implicit BEGIN breaks SAVEPOINT handling, which the audit
    trail relies on.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=False)
        configure_sqlite(engine)
        return engine
    return create_engine(url, pool_pre_ping=True, echo=False)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
