from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class StoredDocument(SQLModel, table=True):
    """One document of the SQL-backed document store, addressed by its full path."""

    __tablename__ = "documents"

    path: str = Field(primary_key=True, max_length=512)
    collection: str = Field(index=True, nullable=False, max_length=512)
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    # Bumped on every write and delete; transactions compare it to detect concurrent writers
    version: int = Field(default=1, nullable=False)
    # Deleted documents stay as tombstones so a recreated path never reuses a version
    is_deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None, nullable=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
