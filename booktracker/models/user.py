# booktracker/models/user.py

from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING
from pymongo.database import Database


# -------------------------------
# User Collection
# -------------------------------

USERS = "users"


def ensure_user_indexes(db: Database):
    """
    At most one user per email.
    """
    db[USERS].create_index([("email", ASCENDING)], unique=True)


def new_user_document(username: str, email: str, hashed_password: str, is_admin: bool = False) -> dict:
    return {
        "username": username,
        "email": email.lower(),
        "hashed_password": hashed_password,
        "is_admin": is_admin,
        "created_at": datetime.now(timezone.utc),
    }


def public_user(doc: dict) -> dict:
    """
    Strips the password hash and stringifies the id for responses.
    """
    return {
        "id": str(doc["_id"]),
        "username": doc["username"],
        "email": doc["email"],
        "is_admin": bool(doc.get("is_admin", False)),
    }


# -------------------------------
# Request / Response Schemas
# -------------------------------

def _check_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("must be a valid email address")
    return value


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str
    password: str = Field(min_length=6, max_length=72)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: str) -> str:
        return _check_email(value)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: str) -> str:
        return _check_email(value)


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    is_admin: bool


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut


class AdminUpdate(BaseModel):
    is_admin: bool
