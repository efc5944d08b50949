"""
Database engine
SQLite by default; in-memory URLs share one connection through StaticPool.
"""

import os

from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  registers tables on SQLModel.metadata


def make_engine(database_url: str, echo: bool = False) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo)

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

    # Ensure the data directory exists for file databases
    path = database_url.removeprefix("sqlite:///")
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return create_engine(database_url, connect_args={"check_same_thread": False}, echo=echo)


def create_schema(engine: Engine) -> None:
    """Create all database tables"""
    SQLModel.metadata.create_all(engine)
