"""Catalog store."""
import logging
from typing import List, Optional

from opentelemetry import trace
from sqlalchemy.orm import Session

from errors import Forbidden, InsufficientStock, InvalidInput, NotFound
from models import Product, User, UserRole
from monitoring import products_created_counter
from schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for reading and maintaining the product catalog."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def list_products(self, db: Session, seller_id: Optional[int] = None) -> List[Product]:
        """
        List products, newest first.

        Args:
            db: Database session
            seller_id: Only return products owned by this seller

        Returns:
            List of products
        """
        with self.tracer.start_as_current_span("db.query.list_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            query = db.query(Product)
            if seller_id is not None:
                query = query.filter(Product.seller_id == seller_id)
            products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

            db_span.set_attribute("db.rows_returned", len(products))
            return products

    def get_product(self, db: Session, product_id: int) -> Optional[Product]:
        """Return the product with ``product_id`` or None."""
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.get(Product, product_id)
            db_span.set_attribute("db.rows_returned", 0 if product is None else 1)
            return product

    def require_product(self, db: Session, product_id: int) -> Product:
        """
        Return the product with ``product_id``.

        Raises:
            NotFound: If no such product exists
        """
        product = self.get_product(db, product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        return product

    def create_product(self, db: Session, seller: User, data: ProductCreate) -> Product:
        """
        Add a product owned by ``seller``.

        Raises:
            Forbidden: If the actor is not a seller
        """
        if seller.role != UserRole.SELLER:
            raise Forbidden("Only sellers can add products")

        product = Product(
            seller_id=seller.id,
            name=data.name,
            price=data.price,
            stock=data.stock,
            sizes=data.sizes,
            image_url=data.image_url,
            description=data.description
        )
        db.add(product)
        db.commit()
        db.refresh(product)

        products_created_counter.add(1, {"seller_id": str(seller.id)})
        logger.info("Created product", extra={
            "product_id": product.id,
            "seller_id": seller.id,
            "product_name": product.name,
            "stock": product.stock
        })
        return product

    def update_product(
        self,
        db: Session,
        seller: User,
        product_id: int,
        data: ProductUpdate
    ) -> Product:
        """
        Apply a partial update to a product owned by ``seller``.

        Raises:
            NotFound: If the product does not exist
            Forbidden: If the actor does not own the product
            InvalidInput: If the update carries no fields
        """
        product = self.require_product(db, product_id)
        if seller.role != UserRole.SELLER or product.seller_id != seller.id:
            raise Forbidden(f"Product {product_id} belongs to another seller")

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise InvalidInput("No product fields supplied")
        for field, value in changes.items():
            if value is None and field in ("name", "price", "stock", "sizes"):
                raise InvalidInput(f"{field} cannot be cleared")
            setattr(product, field, value)

        db.commit()
        db.refresh(product)

        logger.info("Updated product", extra={
            "product_id": product.id,
            "seller_id": seller.id,
            "fields": sorted(changes)
        })
        return product

    def decrement_stock(self, db: Session, product_id: int, quantity: int) -> None:
        """
        Remove ``quantity`` units from a product's stock.

        The check and the write are one conditional UPDATE, so stock never goes
        negative even when checkouts race. Does not commit; the caller owns the
        transaction.

        Raises:
            InsufficientStock: If fewer than ``quantity`` units remain
        """
        with self.tracer.start_as_current_span("db.query.update_product_stock") as update_span:
            update_span.set_attribute("db.operation", "UPDATE")
            update_span.set_attribute("db.table", "products")
            update_span.set_attribute("product.id", product_id)
            update_span.set_attribute("quantity", quantity)

            rows = db.query(Product).filter(
                Product.id == product_id,
                Product.stock >= quantity
            ).update(
                {Product.stock: Product.stock - quantity},
                synchronize_session=False
            )

            update_span.set_attribute("db.rows_affected", rows)
            if rows != 1:
                raise InsufficientStock(product_id)
