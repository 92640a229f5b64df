# booktracker/models/__init__.py

from pymongo.database import Database

from .book import ensure_book_indexes
from .user import ensure_user_indexes


def ensure_indexes(db: Database):
    ensure_user_indexes(db)
    ensure_book_indexes(db)
