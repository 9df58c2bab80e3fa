"""Engine construction and schema initialization"""

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from mdillustrate.crud.models import NoteBackup  # noqa: F401  registers the table


def make_engine(db_url: str) -> Engine:
    return create_engine(db_url, echo=False)


def init_db(engine: Engine) -> None:
    """Create tables if missing."""
    SQLModel.metadata.create_all(engine)
