"""Actor resolution.

Passwords and sessions are handled outside this service; callers identify the
acting account with the ``X-User-Id`` header.
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from dependencies import get_account_service
from models import User, UserRole
from monitoring import auth_failures_counter
from services.account_service import AccountService

logger = logging.getLogger(__name__)


def parse_user_id(x_user_id: Optional[str]) -> Optional[int]:
    """
    Parse the ``X-User-Id`` header.

    Returns:
        The user id, or None when the header is absent

    Raises:
        HTTPException: If the header is not a positive integer
    """
    if x_user_id is None:
        return None

    value = x_user_id.strip()
    if not value.isdigit() or int(value) <= 0:
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid X-User-Id header", extra={
            "header": value[:20]
        })
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    return int(value)


def get_optional_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    accounts: AccountService = Depends(get_account_service)
) -> Optional[User]:
    """Resolve the acting user, allowing anonymous (guest) requests."""
    user_id = parse_user_id(x_user_id)
    if user_id is None:
        return None

    user = accounts.get_user(db, user_id)
    if user is None:
        auth_failures_counter.add(1, {"reason": "unknown_user"})
        logger.warning("Authentication failed: Unknown user", extra={
            "user_id": user_id
        })
        raise HTTPException(status_code=401, detail="Unknown user")

    logger.debug("Resolved acting user", extra={
        "user_id": user.id,
        "role": user.role.value
    })
    return user


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Resolve the acting user; the request must identify one."""
    if user is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing X-User-Id header")
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user


def require_seller(user: User = Depends(get_current_user)) -> User:
    """Acting user, who must be a seller."""
    if user.role != UserRole.SELLER:
        raise HTTPException(status_code=403, detail="Seller account required")
    return user


def require_customer(user: User = Depends(get_current_user)) -> User:
    """Acting user, who must be a customer."""
    if user.role != UserRole.CUSTOMER:
        raise HTTPException(status_code=403, detail="Customer account required")
    return user
