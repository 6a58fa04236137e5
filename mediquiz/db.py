from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from mediquiz import models  # noqa: F401  registers the tables on SQLModel.metadata


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for DATABASE_URL (Postgres in production, SQLite locally)."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # in-memory databases vanish per connection unless the pool holds one
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    return create_engine(database_url, echo=False)


def init_db(engine: Engine) -> None:
    """Create all tables that don't exist yet."""
    SQLModel.metadata.create_all(engine)
