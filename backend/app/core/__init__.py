"""
Core package containing configuration, database, security, errors and logging.
"""
from app.core.config import settings
from app.core.database import Base, DbSession, get_db_session
from app.core.errors import (
    AppError,
    AuthError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from app.core.logging import configure_logging, get_logger
from app.core.security import (
    decrypt_token,
    encrypt_token,
    verify_oauth_hmac,
    verify_webhook_hmac,
)

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "AppError",
    "AuthError",
    "InvalidStateError",
    "NotFoundError",
    "PersistenceError",
    "UpstreamError",
    "ValidationError",
    "encrypt_token",
    "decrypt_token",
    "verify_oauth_hmac",
    "verify_webhook_hmac",
]
