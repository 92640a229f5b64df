# booktracker/models/book.py

import enum
from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database


BOOKS = "books"


class ReadingStatus(str, enum.Enum):
    TO_READ = "to-read"
    READING = "reading"
    READ = "read"


def ensure_book_indexes(db: Database):
    db[BOOKS].create_index([("owner_id", ASCENDING), ("created_at", DESCENDING)])


def public_book(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "owner_id": doc["owner_id"],
        "title": doc["title"],
        "author": doc["author"],
        "status": doc.get("status", ReadingStatus.TO_READ.value),
        "rating": doc.get("rating"),
        "notes": doc.get("notes"),
        "created_at": doc.get("created_at"),
        "updated_at": doc.get("updated_at"),
    }


class BookCreate(BaseModel):
    """
    Request schema for adding a book to the caller's list.
    """
    title: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=200)
    status: ReadingStatus = ReadingStatus.TO_READ
    rating: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = Field(default=None, max_length=2000)

    def to_document(self, owner_id: str) -> dict:
        now = datetime.now(timezone.utc)
        doc = self.model_dump(mode="json")
        doc.update({"owner_id": owner_id, "created_at": now, "updated_at": now})
        return doc


class BookUpdate(BaseModel):
    """
    Partial update; only the fields sent are changed.
    """
    title: str | None = Field(default=None, min_length=1, max_length=200)
    author: str | None = Field(default=None, min_length=1, max_length=200)
    status: ReadingStatus | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("title", "author", "status", mode="before")
    @classmethod
    def not_null(cls, value):
        # rating and notes may be cleared; these may not
        if value is None:
            raise ValueError("may not be null")
        return value

    def changes(self) -> dict:
        return self.model_dump(mode="json", exclude_unset=True)
