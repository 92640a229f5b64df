# booktracker/api/admin.py

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from booktracker.api.auth import require_admin
from booktracker.api.books import book_filter
from booktracker.database import get_db
from booktracker.models.book import BOOKS, public_book
from booktracker.models.user import USERS, AdminUpdate, public_user


# Every endpoint here requires an admin caller
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# -------------------------------
# User Management
# -------------------------------

@router.get("/users")
def list_users(db: Database = Depends(get_db)):
    return [public_user(doc) for doc in db[USERS].find().sort("created_at", ASCENDING)]


@router.patch("/users/{user_id}")
def set_admin_flag(
    user_id: str,
    req: AdminUpdate,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    """
    Grants or revokes the admin flag. Admins cannot demote themselves.
    """
    try:
        oid = ObjectId(user_id)
    except InvalidId:
        raise HTTPException(status_code=404, detail="User not found")
    if oid == admin["_id"] and not req.is_admin:
        raise HTTPException(status_code=400, detail="You cannot revoke your own admin access")

    doc = db[USERS].find_one_and_update(
        {"_id": oid},
        {"$set": {"is_admin": req.is_admin}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(doc)


# -------------------------------
# Book Moderation
# -------------------------------

@router.get("/books")
def list_all_books(db: Database = Depends(get_db)):
    return [public_book(doc) for doc in db[BOOKS].find().sort("created_at", DESCENDING)]


@router.delete("/books/{book_id}")
def delete_any_book(book_id: str, db: Database = Depends(get_db)):
    result = db[BOOKS].delete_one(book_filter(book_id))
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"message": "Book deleted"}
