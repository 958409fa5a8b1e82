"""Orders API router."""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session
from typing import Optional

from auth import get_current_user, get_optional_user, require_customer, require_seller
from database import get_db
from dependencies import get_order_service
from models import User, UserRole
from schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    OrdersListResponse,
    ProductResponse,
    StatusUpdateRequest,
)
from services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=CheckoutResponse, status_code=201)
def checkout(
    request: CheckoutRequest,
    db: Session = Depends(get_db),
    actor: Optional[User] = Depends(get_optional_user),
    order_service: OrderService = Depends(get_order_service)
):
    """
    Check out a cart.

    Customers become the customer of every created order; sellers and guests
    place orders without a customer id.
    """
    customer_id = actor.id if actor is not None and actor.role == UserRole.CUSTOMER else None

    result = order_service.place_order(db, request.items, request.buyer(customer_id))

    return CheckoutResponse(
        updated_products=[ProductResponse.model_validate(p) for p in result["updated_products"]],
        created_orders=[OrderResponse.from_order(o) for o in result["created_orders"]]
    )


@router.get("", response_model=OrdersListResponse)
def get_orders(
    db: Session = Depends(get_db),
    actor: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
):
    """Customers see their purchases, sellers see orders for their products."""
    if actor.role == UserRole.SELLER:
        orders = order_service.list_orders_for_seller(db, actor.id)
    else:
        orders = order_service.list_orders_for_customer(db, actor.id)

    return OrdersListResponse(orders=[OrderResponse.from_order(o) for o in orders])


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int = Path(..., gt=0, description="Order ID"),
    db: Session = Depends(get_db),
    actor: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one order visible to the acting user."""
    return OrderResponse.from_order(order_service.get_order_for_actor(db, order_id, actor))


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    request: StatusUpdateRequest,
    order_id: int = Path(..., gt=0, description="Order ID"),
    db: Session = Depends(get_db),
    seller: User = Depends(require_seller),
    order_service: OrderService = Depends(get_order_service)
):
    """Move an order to packing or shipped."""
    order = order_service.advance_order_status(db, order_id, request.status, seller)
    return OrderResponse.from_order(order)


@router.post("/{order_id}/receive", response_model=OrderResponse)
def confirm_receipt(
    order_id: int = Path(..., gt=0, description="Order ID"),
    db: Session = Depends(get_db),
    customer: User = Depends(require_customer),
    order_service: OrderService = Depends(get_order_service)
):
    """Mark a shipped order as received."""
    order = order_service.acknowledge_receipt(db, order_id, customer.id)
    return OrderResponse.from_order(order)
