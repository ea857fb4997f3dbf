"""Engine factory and session-scoped access to the key-value store."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlmodel import Session, SQLModel, create_engine

from spreadbook.config import DATABASE_URL
from spreadbook.db.models import Setting  # noqa: F401  (registers the table)
from spreadbook.db.store import KeyValueStore


def make_engine(url: str = DATABASE_URL, **engine_kwargs):
    """
    Build an engine for `url` and create the `setting` table if missing.

    A file-backed SQLite URL gets its parent directory created first.
    """
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)

    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args, echo=False, **engine_kwargs)
    SQLModel.metadata.create_all(engine)
    return engine


@contextmanager
def open_store(engine=None) -> Iterator[KeyValueStore]:
    """KeyValueStore on a fresh session; builds an engine from DATABASE_URL when none is given."""
    with Session(engine if engine is not None else make_engine()) as session:
        yield KeyValueStore(session)
