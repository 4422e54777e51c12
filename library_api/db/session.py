from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from library_api.core.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _connect_args(url: str) -> dict:
    # SQLite: las sesiones se usan desde el threadpool de FastAPI
    if _is_sqlite(url):
        return {"check_same_thread": False, "timeout": 30}
    return {}


# Engine: PostgreSQL en producción, SQLite en tests/local
engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)


if _is_sqlite(settings.DATABASE_URL):
    # pysqlite abre las transacciones tarde y en modo DEFERRED; dos borrows
    # concurrentes pueden quedar trabados subiendo de SHARED a RESERVED.
    # Con BEGIN IMMEDIATE cada transacción toma el lock de escritura al empezar.

    @event.listens_for(engine, "connect")
    def _sqlite_disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# SessionLocal: lo que inyectamos en los endpoints
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

# Base: clase base para los modelos SQLAlchemy
Base = declarative_base()


def init_db() -> None:
    """Crea las tablas que falten (todavía no hay migraciones)."""
    from library_api.db import models  # noqa: F401  registra los modelos en Base

    Base.metadata.create_all(bind=engine)
