# booktracker/api/auth.py

from datetime import datetime, timedelta, timezone
from bson import ObjectId
from bson.errors import InvalidId
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from booktracker.core.errors import UnauthorizedError, ValidationError
from booktracker.database import get_db
from booktracker.models.user import (
    USERS,
    LoginRequest,
    RegisterRequest,
    Token,
    UserOut,
    new_user_document,
    public_user,
)


ALGORITHM = "HS256"


router = APIRouter(prefix="/api/auth", tags=["auth"])
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# -------------------------------
# Password & Token Helpers
# -------------------------------

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, secret_key: str, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def create_user(db: Database, username: str, email: str, password: str, is_admin: bool = False) -> dict:
    """
    Inserts a user with a hashed password.
    Raises ValidationError if the email is already registered.
    """
    email = email.lower()
    if db[USERS].find_one({"email": email}):
        raise ValidationError({"email": "Email is already registered"})
    doc = new_user_document(username, email, get_password_hash(password), is_admin=is_admin)
    try:
        result = db[USERS].insert_one(doc)
    except DuplicateKeyError:
        raise ValidationError({"email": "Email is already registered"})
    doc["_id"] = result.inserted_id
    return doc


def authenticate_user(db: Database, email: str, password: str):
    user = db[USERS].find_one({"email": email.lower()})
    if not user or not verify_password(password, user["hashed_password"]):
        return None
    return user


# -------------------------------
# Dependencies
# -------------------------------

def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> dict:
    if not token:
        raise UnauthorizedError("Missing bearer token")
    settings = request.app.state.settings
    try:
        payload = jwt.decode(token, settings.secret_key(), algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedError("Token has no subject")
        user = db[USERS].find_one({"_id": ObjectId(user_id)})
    except (JWTError, InvalidId):
        raise UnauthorizedError("Could not validate credentials")
    if user is None:
        raise UnauthorizedError("User no longer exists")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("is_admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


# -------------------------------
# Endpoints
# -------------------------------

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, db: Database = Depends(get_db)):
    user = create_user(db, req.username.strip(), req.email, req.password)
    return {"message": "User registered successfully", "user": public_user(user)}


@router.post("/login", response_model=Token)
def login(req: LoginRequest, request: Request, db: Database = Depends(get_db)):
    user = authenticate_user(db, req.email, req.password)
    if not user:
        raise UnauthorizedError("Incorrect email or password")
    settings = request.app.state.settings
    access_token = create_access_token(
        data={"sub": str(user["_id"])},
        secret_key=settings.secret_key(),
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return {"access_token": access_token, "token_type": "bearer", "user": public_user(user)}


@router.get("/me", response_model=UserOut)
def read_users_me(current_user: dict = Depends(get_current_user)):
    return public_user(current_user)
