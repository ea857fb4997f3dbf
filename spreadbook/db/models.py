"""
SQLModel definitions for the trade log store.
A single key-value table holding JSON blobs.
"""

from datetime import datetime
from sqlmodel import SQLModel, Field


class Setting(SQLModel, table=True):
    """Persisted blob: custom structures, trading constants, the trade log."""
    __tablename__ = "setting"

    key: str = Field(primary_key=True)  # e.g., "custom_structures"
    value: str = Field()  # JSON text
    updated_at: datetime = Field(default_factory=datetime.utcnow)
