# booktracker/config.py

import os
import re
import secrets
from dotenv import load_dotenv
from typing import Literal
from pydantic import BaseModel, field_validator, model_validator

from booktracker.core.logging import get_logger


# -------------------------------
# Defaults
# -------------------------------

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/booktracker"
DEFAULT_PORT = 3001
DEFAULT_DATABASE = "booktracker"

# Levels uvicorn accepts
LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "TRACE"]

_CREDENTIALS = re.compile(r"//([^:/@]+):([^@/]+)@")


def redact_uri(uri: str | None) -> str | None:
    """
    Masks the user and password segments of a connection string.
    Scheme, host, database path and query are kept as-is.
    """
    if uri is None:
        return None
    return _CREDENTIALS.sub("//****:****@", uri, count=1)


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value is not None else default


def _mongodb_uri() -> str | None:
    raw = os.getenv("MONGODB_URI")
    if raw is None:
        return DEFAULT_MONGODB_URI
    # Set but blank counts as missing
    return raw.strip() or None


# -------------------------------
# Settings
# -------------------------------

class Settings(BaseModel):
    """
    Runtime configuration resolved from the process environment.
    """
    mongodb_uri: str | None = DEFAULT_MONGODB_URI
    database_name: str = DEFAULT_DATABASE
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    environment: str = "production"
    log_level: LogLevel = "INFO"
    cors_origins: list[str] = [f"http://localhost:{DEFAULT_PORT}"]
    public_dir: str = "public"
    uploads_dir: str = "uploads"
    jwt_secret_key: str | None = None
    access_token_expire_minutes: int = 60
    server_selection_timeout_ms: int = 5000
    socket_timeout_ms: int = 45000
    admin_setup_token: str | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        if isinstance(value, str):
            value = value.strip().upper()
            return "WARNING" if value == "WARN" else value
        return value

    @model_validator(mode="after")
    def ensure_secret_key(self) -> "Settings":
        # Generated once here; tokens signed with it do not survive a restart
        if not self.jwt_secret_key:
            self.jwt_secret_key = secrets.token_urlsafe(32)
            get_logger(__name__).warning(
                "JWT_SECRET_KEY is not set; using a random key for this process"
            )
        return self

    @property
    def development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def redacted_uri(self) -> str | None:
        return redact_uri(self.mongodb_uri)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = _env("CORS_ORIGINS", f"http://localhost:{DEFAULT_PORT}")
        return cls(
            mongodb_uri=_mongodb_uri(),
            database_name=_env("MONGODB_DATABASE", DEFAULT_DATABASE),
            host=_env("HOST", "0.0.0.0"),
            port=_env("PORT", str(DEFAULT_PORT)),
            environment=_env("APP_ENV") or _env("NODE_ENV", "production"),
            log_level=_env("LOG_LEVEL", "INFO"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            public_dir=_env("PUBLIC_DIR", "public"),
            uploads_dir=_env("UPLOADS_DIR", "uploads"),
            jwt_secret_key=_env("JWT_SECRET_KEY"),
            access_token_expire_minutes=_env("ACCESS_TOKEN_EXPIRE_MINUTES", "60"),
            server_selection_timeout_ms=_env("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000"),
            socket_timeout_ms=_env("MONGODB_SOCKET_TIMEOUT_MS", "45000"),
            admin_setup_token=_env("ADMIN_SETUP_TOKEN") or None,
        )

    def secret_key(self) -> str:
        return self.jwt_secret_key

    def summary(self) -> dict:
        return {
            "mongodb_uri": self.redacted_uri,
            "port": self.port,
            "environment": self.environment,
            "public_dir": self.public_dir,
            "uploads_dir": self.uploads_dir,
        }
