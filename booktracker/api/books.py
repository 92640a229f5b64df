# booktracker/api/books.py

from datetime import datetime, timezone
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, status
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from booktracker.api.auth import get_current_user
from booktracker.database import get_db
from booktracker.models.book import BOOKS, BookCreate, BookUpdate, ReadingStatus, public_book


router = APIRouter(prefix="/api/books", tags=["books"])


def book_filter(book_id: str, owner_id: str | None = None) -> dict:
    """
    Builds the lookup for a single book, optionally scoped to its owner.
    Malformed ids are reported the same way as missing books.
    """
    try:
        query = {"_id": ObjectId(book_id)}
    except InvalidId:
        raise HTTPException(status_code=404, detail="Book not found")
    if owner_id is not None:
        query["owner_id"] = owner_id
    return query


# -------------------------------
# Book Endpoints
# -------------------------------

@router.get("")
@router.get("/", include_in_schema=False)
def list_books(
    status: ReadingStatus | None = None,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """
    Lists the caller's books, newest first.
    """
    query = {"owner_id": str(user["_id"])}
    if status is not None:
        query["status"] = status.value
    cursor = db[BOOKS].find(query).sort("created_at", DESCENDING)
    return [public_book(doc) for doc in cursor]


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_book(req: BookCreate, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    doc = req.to_document(owner_id=str(user["_id"]))
    result = db[BOOKS].insert_one(doc)
    doc["_id"] = result.inserted_id
    return public_book(doc)


@router.get("/{book_id}")
def get_book(book_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    doc = db[BOOKS].find_one(book_filter(book_id, str(user["_id"])))
    if doc is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return public_book(doc)


@router.put("/{book_id}")
def update_book(
    book_id: str,
    req: BookUpdate,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = req.changes()
    changes["updated_at"] = datetime.now(timezone.utc)
    doc = db[BOOKS].find_one_and_update(
        book_filter(book_id, str(user["_id"])),
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return public_book(doc)


@router.delete("/{book_id}")
def delete_book(book_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    result = db[BOOKS].delete_one(book_filter(book_id, str(user["_id"])))
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"message": "Book deleted"}
