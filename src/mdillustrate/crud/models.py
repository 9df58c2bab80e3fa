"""Database table definitions for note backups"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlmodel import Field, SQLModel


class NoteBackup(SQLModel, table=True):
    """Snapshot of a note taken right before images were injected into it."""
    __tablename__ = "note_backups"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    note_path: str = Field(..., sa_column=Column(Text, nullable=False, index=True))
    original_content: str = Field(..., sa_column=Column(Text, nullable=False))
    hash: str = Field(..., sa_column=Column(String(64), nullable=False))
    injected_images: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
