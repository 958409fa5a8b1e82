"""Account store."""
import logging
from typing import Optional

from opentelemetry import trace
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import Conflict, NotFound
from models import User, UserRole

logger = logging.getLogger(__name__)


class AccountService:
    """Service for looking up and creating user accounts."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def get_user(self, db: Session, user_id: int) -> Optional[User]:
        """Return the user with ``user_id`` or None."""
        with self.tracer.start_as_current_span("db.query.get_user") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "users")
            db_span.set_attribute("user.id", user_id)
            return db.get(User, user_id)

    def require_user(self, db: Session, user_id: int) -> User:
        """
        Return the user with ``user_id``.

        Raises:
            NotFound: If no such user exists
        """
        user = self.get_user(db, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def get_user_by_username(self, db: Session, username: str) -> Optional[User]:
        """Case-insensitive username lookup."""
        return db.query(User).filter(
            func.lower(User.username) == username.strip().lower()
        ).first()

    def create_user(
        self,
        db: Session,
        username: str,
        role: UserRole = UserRole.CUSTOMER,
        email: Optional[str] = None,
        password_hash: Optional[str] = None
    ) -> User:
        """
        Create a user account.

        Args:
            db: Database session
            username: Unique (case-insensitive) username
            role: customer or seller
            email: Optional unique email, already normalized
            password_hash: Optional precomputed password hash

        Returns:
            The committed user

        Raises:
            Conflict: If the username or email is already registered
        """
        if self.get_user_by_username(db, username) is not None:
            raise Conflict("Username is already taken.")
        if email and db.query(User).filter(User.email == email).first() is not None:
            raise Conflict("Email is already registered.")

        user = User(username=username, email=email, role=role, password_hash=password_hash)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration
            db.rollback()
            raise Conflict("Username or email is already registered.")
        db.refresh(user)

        logger.info("Created user account", extra={
            "user_id": user.id,
            "username": user.username,
            "role": user.role.value
        })
        return user
