# app/database.py
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Pooled Postgres limits the number of clients. If each backend
# process opens many connections (SQLAlchemy default pool_size 5+),
# you can easily hit:
#   "MaxClientsInSessionMode: max clients reached"
#
# SQLite (local dev / tests) uses its own default pool.
# ---------------------------------------------------------

db_url = settings.DATABASE_URL
engine_kwargs: dict = {"echo": False, "pool_pre_ping": True}

if db_url.startswith("postgresql"):
    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"
    engine_kwargs.update(pool_size=1, max_overflow=0)
elif db_url.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(db_url, **engine_kwargs)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
