"""Order management service."""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Sequence

from opentelemetry import trace
from sqlalchemy import or_
from sqlalchemy.orm import Session

from errors import (
    Forbidden,
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    QuickShopError,
)
from models import Order, OrderStatus, Product, User, UserRole, utcnow
from monitoring import (
    checkout_failures_counter,
    insufficient_stock_counter,
    order_quantity_histogram,
    orders_placed_counter,
    receipts_acknowledged_counter,
    status_transitions_counter,
)
from schemas import BuyerInfo, LineItem
from services.account_service import AccountService
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

# The single status each state may move to
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.PACKING,
    OrderStatus.PACKING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.COMPLETED,
}

# Steps a seller drives; shipped -> completed belongs to the customer
SELLER_TRANSITIONS = {
    OrderStatus.PENDING: OrderStatus.PACKING,
    OrderStatus.PACKING: OrderStatus.SHIPPED,
}


class OrderService:
    """Service for placing orders and moving them through fulfilment."""

    def __init__(
        self,
        catalog_service: CatalogService,
        account_service: AccountService
    ):
        """
        Initialize order service.

        Args:
            catalog_service: Catalog store
            account_service: Account store
        """
        self.catalog_service = catalog_service
        self.account_service = account_service
        self.tracer = trace.get_tracer(__name__)

    def place_order(
        self,
        db: Session,
        items: Sequence[LineItem],
        buyer: BuyerInfo
    ) -> Dict[str, Any]:
        """
        Check out a cart.

        Every line is validated, stock is decremented and one order row per
        line is inserted inside a single transaction. Any failure rolls the
        whole cart back: no stock change and no order row survives.

        Args:
            db: Database session
            items: Line items of the cart
            buyer: Buyer and shipping details

        Returns:
            ``updated_products`` (post-decrement) and ``created_orders``

        Raises:
            InvalidInput: If the cart is empty or a line is malformed
            NotFound: If a product or the customer does not exist
            InsufficientStock: If a product cannot cover the requested quantity
        """
        span = trace.get_current_span()
        span.set_attribute("order.line_count", len(items))
        span.set_attribute("payment.method", buyer.payment_method)

        try:
            requested = self._validate_lines(items)

            if buyer.customer_id is not None:
                self.account_service.require_user(db, buyer.customer_id)

            with self.tracer.start_as_current_span("db.transaction.create_orders") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "orders")

                products = self._lock_products(db, list(requested))
                self._check_availability(products, requested, items)

                created_orders = []
                for item in items:
                    product = products[item.product_id]
                    self.catalog_service.decrement_stock(db, product.id, item.quantity)
                    order = Order(
                        product_id=product.id,
                        seller_id=product.seller_id,
                        customer_id=buyer.customer_id,
                        quantity=item.quantity,
                        size=item.size,
                        status=OrderStatus.PENDING,
                        full_name=buyer.full_name,
                        address=buyer.address,
                        phone=buyer.phone,
                        payment_method=buyer.payment_method,
                        product_name=product.name,
                        product_price=product.price,
                        product_image_url=product.image_url
                    )
                    db.add(order)
                    created_orders.append(order)

                db.commit()
                db_span.set_attribute("order.count", len(created_orders))
        except QuickShopError as e:
            db.rollback()
            checkout_failures_counter.add(1, {"reason": type(e).__name__})
            if isinstance(e, InsufficientStock):
                insufficient_stock_counter.add(1, {"product_id": str(e.product_id)})
            logger.warning("Checkout rejected", extra={
                "customer_id": buyer.customer_id,
                "reason": type(e).__name__,
                "error": e.message
            })
            raise
        except Exception as e:
            db.rollback()
            logger.error("Failed to create orders", extra={
                "customer_id": buyer.customer_id,
                "line_count": len(items),
                "error": str(e)
            })
            raise

        updated_products = [products[product_id] for product_id in requested]
        for product in updated_products:
            db.refresh(product)

        for order in created_orders:
            orders_placed_counter.add(1, {"payment_method": buyer.payment_method})
            order_quantity_histogram.record(order.quantity, {"product_id": str(order.product_id)})

        logger.info("Checkout completed", extra={
            "customer_id": buyer.customer_id,
            "order_ids": [order.id for order in created_orders],
            "payment_method": buyer.payment_method,
            "item_count": len(created_orders)
        })

        return {
            "updated_products": updated_products,
            "created_orders": created_orders
        }

    def _validate_lines(self, items: Sequence[LineItem]) -> "OrderedDict[int, int]":
        """Check line shapes and sum the requested quantity per product."""
        if not items:
            raise InvalidInput("Cart is empty")

        requested: "OrderedDict[int, int]" = OrderedDict()
        for item in items:
            if not _is_positive_int(item.product_id):
                raise InvalidInput(f"Invalid product id: {item.product_id!r}")
            if not _is_positive_int(item.quantity):
                raise InvalidInput(
                    f"Quantity for product {item.product_id} must be a positive integer"
                )
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        return requested

    def _lock_products(self, db: Session, product_ids: List[int]) -> Dict[int, Product]:
        """
        Re-read the products of a cart with row locks.

        Rows are locked in ascending id order so concurrent checkouts over the
        same products cannot deadlock. SQLite ignores FOR UPDATE and serializes
        writers on the database lock instead.
        """
        with self.tracer.start_as_current_span("db.query.lock_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT FOR UPDATE")
            db_span.set_attribute("db.table", "products")

            rows = db.query(Product).filter(
                Product.id.in_(sorted(product_ids))
            ).order_by(Product.id).with_for_update().all()

            db_span.set_attribute("db.rows_returned", len(rows))

        products = {product.id: product for product in rows}
        for product_id in product_ids:
            if product_id not in products:
                raise NotFound(f"Product {product_id} not found")
        return products

    def _check_availability(
        self,
        products: Dict[int, Product],
        requested: Dict[int, int],
        items: Sequence[LineItem]
    ) -> None:
        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock < quantity:
                raise InsufficientStock(product.id, product.name)

        for item in items:
            product = products[item.product_id]
            sizes = product.sizes or []
            if item.size is not None and item.size not in sizes:
                raise InvalidInput(
                    f"Size '{item.size}' is not available for product '{product.name}'"
                )

    def get_order(self, db: Session, order_id: int) -> Order:
        """
        Return the order with ``order_id``.

        Raises:
            NotFound: If no such order exists
        """
        with self.tracer.start_as_current_span("db.query.get_order") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("order.id", order_id)

            order = db.get(Order, order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found")
            return order

    def get_order_for_actor(self, db: Session, order_id: int, actor: User) -> Order:
        """Return an order visible to ``actor`` (its customer or its seller)."""
        order = self.get_order(db, order_id)
        if actor.role == UserRole.SELLER and order.seller_id in (None, actor.id):
            return order
        if actor.role == UserRole.CUSTOMER and order.customer_id == actor.id:
            return order
        raise Forbidden(f"Order {order_id} is not visible to user {actor.id}")

    def list_orders_for_customer(self, db: Session, customer_id: int) -> List[Order]:
        """Orders placed by a customer, newest first."""
        with self.tracer.start_as_current_span("db.query.get_customer_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", customer_id)

            orders = db.query(Order).filter(
                Order.customer_id == customer_id
            ).order_by(Order.created_at.desc(), Order.id.desc()).all()

            db_span.set_attribute("db.rows_returned", len(orders))
            return orders

    def list_orders_for_seller(self, db: Session, seller_id: int) -> List[Order]:
        """Orders for a seller's products, newest first."""
        with self.tracer.start_as_current_span("db.query.get_seller_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", seller_id)

            orders = db.query(Order).filter(
                Order.seller_id == seller_id
            ).order_by(Order.created_at.desc(), Order.id.desc()).all()

            db_span.set_attribute("db.rows_returned", len(orders))
            return orders

    def advance_order_status(
        self,
        db: Session,
        order_id: int,
        requested_status,
        actor: User
    ) -> Order:
        """
        Move an order one step forward on behalf of its seller.

        Requesting the order's current status is a no-op that returns the
        order unchanged.

        Args:
            db: Database session
            order_id: Order identifier
            requested_status: Target status (``OrderStatus`` or its value)
            actor: Acting user

        Returns:
            The order after the transition

        Raises:
            InvalidInput: If the status is not a known order status
            NotFound: If the order does not exist
            Forbidden: If the actor is not the order's seller
            InvalidTransition: If the target is not the next seller step
        """
        try:
            target = OrderStatus(requested_status)
        except ValueError:
            raise InvalidInput(f"Unknown order status: {requested_status!r}")

        if actor.role != UserRole.SELLER:
            raise Forbidden("Only sellers can update order status")

        order = self.get_order(db, order_id)
        if order.seller_id is not None and order.seller_id != actor.id:
            raise Forbidden(f"Order {order_id} belongs to another seller")

        current = order.status
        if current == target:
            return order

        if SELLER_TRANSITIONS.get(current) != target:
            if NEXT_STATUS.get(current) == target:
                raise InvalidTransition(
                    f"Order {order_id} can only be completed by the customer confirming receipt"
                )
            raise InvalidTransition(
                f"Cannot move order {order_id} from '{current.value}' to '{target.value}'"
            )

        self._conditional_update(
            db,
            order,
            [Order.status == current],
            {Order.status: target},
            InvalidTransition(f"Order {order_id} was updated concurrently; it is no longer '{current.value}'")
        )

        status_transitions_counter.add(1, {"from": current.value, "to": target.value})
        logger.info("Order status updated", extra={
            "order_id": order_id,
            "seller_id": actor.id,
            "from_status": current.value,
            "to_status": target.value
        })
        return order

    def acknowledge_receipt(self, db: Session, order_id: int, customer_id: int) -> Order:
        """
        Mark a shipped order as received by its customer.

        An order placed without a customer is adopted by the acknowledging
        customer.

        Raises:
            NotFound: If the order or customer does not exist
            Forbidden: If the user is not a customer or not the order's customer
            PreconditionFailed: If the order is not shipped
        """
        customer = self.account_service.require_user(db, customer_id)
        if customer.role != UserRole.CUSTOMER:
            raise Forbidden("Only customers can confirm receipt")

        order = self.get_order(db, order_id)
        if order.customer_id is not None and order.customer_id != customer_id:
            raise Forbidden(f"Order {order_id} belongs to another customer")

        if order.status != OrderStatus.SHIPPED:
            raise PreconditionFailed(
                f"Order {order_id} is '{order.status.value}'; only shipped orders can be marked as received"
            )

        self._conditional_update(
            db,
            order,
            [
                Order.status == OrderStatus.SHIPPED,
                or_(Order.customer_id == customer_id, Order.customer_id.is_(None))
            ],
            {Order.status: OrderStatus.COMPLETED, Order.customer_id: customer_id},
            PreconditionFailed(f"Order {order_id} was updated concurrently")
        )

        status_transitions_counter.add(1, {"from": "shipped", "to": "completed"})
        receipts_acknowledged_counter.add(1)
        logger.info("Order marked as received", extra={
            "order_id": order_id,
            "customer_id": customer_id
        })
        return order

    def _conditional_update(self, db: Session, order: Order, guards, values, lost_race: Exception) -> None:
        """Compare-and-set on one order row; raise ``lost_race`` if the guards no longer hold."""
        with self.tracer.start_as_current_span("db.query.update_order_status") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("order.id", order.id)

            try:
                rows = db.query(Order).filter(Order.id == order.id, *guards).update(
                    {**values, Order.updated_at: utcnow()},
                    synchronize_session=False
                )
                db_span.set_attribute("db.rows_affected", rows)
                if rows != 1:
                    raise lost_race
                db.commit()
            except Exception:
                db.rollback()
                raise

        db.refresh(order)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
