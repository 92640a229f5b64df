# booktracker/api/site.py

import secrets
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import FileResponse, JSONResponse
from pymongo.database import Database

from booktracker.api.auth import create_user
from booktracker.core.errors import UnauthorizedError, ValidationError
from booktracker.core.logging import get_logger
from booktracker.database import get_db
from booktracker.models.user import USERS


logger = get_logger(__name__)

router = APIRouter()

ADMIN_USERNAME = "admin"
ADMIN_EMAIL = "admin@booktracker.local"
ADMIN_PASSWORD = "booktracker-admin"


@router.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=204)


@router.get("/api/test")
def api_test():
    return {"message": "API is working!"}


@router.get("/", include_in_schema=False)
def index(request: Request):
    entry = Path(request.app.state.settings.public_dir) / "index.html"
    if not entry.is_file():
        logger.error("Error serving static file: %s does not exist", entry)
        return JSONResponse(status_code=500, content={"message": "Error serving static file"})
    return FileResponse(entry)


# -------------------------------
# Admin Bootstrap
# -------------------------------

def check_setup_token(request: Request, token: str | None = None):
    """
    The bootstrap endpoint only exists while ADMIN_SETUP_TOKEN is set,
    and every call must present that token.
    """
    expected = request.app.state.settings.admin_setup_token
    if not expected:
        raise HTTPException(status_code=404)
    if not token or not secrets.compare_digest(token, expected):
        raise UnauthorizedError("Invalid setup token")


@router.get("/create-admin", include_in_schema=False, dependencies=[Depends(check_setup_token)])
def create_admin(db: Database = Depends(get_db)):
    if db[USERS].find_one({"email": ADMIN_EMAIL}):
        return JSONResponse(status_code=400, content={"message": "Admin already exists"})
    try:
        create_user(db, ADMIN_USERNAME, ADMIN_EMAIL, ADMIN_PASSWORD, is_admin=True)
    except ValidationError:
        return JSONResponse(status_code=400, content={"message": "Admin already exists"})
    logger.warning("Bootstrap admin %s created; unset ADMIN_SETUP_TOKEN now", ADMIN_EMAIL)
    return {
        "message": "Admin user created!",
        "username": ADMIN_USERNAME,
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD,
    }
