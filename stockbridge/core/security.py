"""
Basic security for the manual-edit and sync routes
"""

import logging
import secrets
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from stockbridge.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

security = HTTPBasic()

DEV_FALLBACK_PASSWORD = "changeme"


def check_auth_configuration(settings: Settings) -> bool:
    """Log how Basic auth is configured at startup. Returns False when the fallback password is in use."""
    if settings.BASIC_AUTH_PASSWORD:
        return True
    if settings.ENVIRONMENT == "production":
        logger.error("BASIC_AUTH_PASSWORD is not set; protected routes will answer 500 until it is")
    else:
        logger.warning(
            f"BASIC_AUTH_PASSWORD is not set; protected routes accept the development password "
            f"'{DEV_FALLBACK_PASSWORD}' for user '{settings.BASIC_AUTH_USERNAME}'"
        )
    return False


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    """
    Simple HTTP Basic Auth - checks username/password from settings
    """
    settings = get_settings()
    correct_username = settings.BASIC_AUTH_USERNAME
    correct_password = settings.BASIC_AUTH_PASSWORD

    # No password in production is a configuration error
    if not correct_password and settings.ENVIRONMENT == "production":
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Basic auth password not configured"
        )

    # In development, allow a default password
    if not correct_password:
        correct_password = DEV_FALLBACK_PASSWORD

    is_correct_username = secrets.compare_digest(
        credentials.username.encode("utf8"),
        correct_username.encode("utf8")
    )
    is_correct_password = secrets.compare_digest(
        credentials.password.encode("utf8"),
        correct_password.encode("utf8")
    )

    if not (is_correct_username and is_correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def require_auth():
    """
    Dependency to require authentication
    Usage: app.include_router(router, dependencies=[require_auth()])
    """
    return Depends(get_current_username)
