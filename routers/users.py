"""Accounts API router."""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_account_service
from schemas import UserCreate, UserResponse
from services.account_service import AccountService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    request: UserCreate,
    db: Session = Depends(get_db),
    accounts: AccountService = Depends(get_account_service)
):
    """Create a customer or seller account."""
    return accounts.create_user(db, request.username, role=request.role, email=request.email)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int = Path(..., gt=0, description="User ID"),
    db: Session = Depends(get_db),
    accounts: AccountService = Depends(get_account_service)
):
    """Get an account."""
    return accounts.require_user(db, user_id)
