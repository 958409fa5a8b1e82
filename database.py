"""Database connection and session management."""
import logging
from decimal import Decimal
from typing import Generator, List, Optional

from fastapi import Request
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, Product, User, UserRole

logger = logging.getLogger(__name__)


DEMO_USERS = [
    {"username": "demo-seller", "email": "seller@quickshop.test", "role": UserRole.SELLER},
    {"username": "demo-customer", "email": "customer@quickshop.test", "role": UserRole.CUSTOMER},
]

DEMO_PRODUCTS = [
    {
        "name": "Classic Tee",
        "price": Decimal("10.00"),
        "stock": 40,
        "sizes": ["S", "M", "L"],
        "image_url": "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?auto=format&fit=crop&w=600&q=80",
        "description": "Soft cotton t-shirt available in multiple colors.",
    },
    {
        "name": "Cardboard Box",
        "price": Decimal("1.00"),
        "stock": 200,
        "sizes": [],
        "image_url": "https://images.unsplash.com/photo-1514996937319-344454492b37?auto=format&fit=crop&w=600&q=80",
        "description": "Sturdy medium size box for shipping or storage.",
    },
    {
        "name": "Toy Bundle",
        "price": Decimal("12.00"),
        "stock": 25,
        "sizes": [],
        "image_url": "https://images.unsplash.com/photo-1601758003122-58c0fef13782?auto=format&fit=crop&w=600&q=80",
        "description": "Assorted toys for kids, perfect for parties.",
    },
    {
        "name": "Instant Noodles Pack",
        "price": Decimal("1.00"),
        "stock": 500,
        "sizes": [],
        "image_url": "https://images.unsplash.com/photo-1512058454905-109598bd0cad?auto=format&fit=crop&w=600&q=80",
        "description": "Quick meal ready in minutes with authentic flavor.",
    },
    {
        "name": "Cooking Manual",
        "price": Decimal("15.00"),
        "stock": 30,
        "sizes": [],
        "image_url": "https://images.unsplash.com/photo-1513475382585-d06e58bcb0e0?auto=format&fit=crop&w=600&q=80",
        "description": "Comprehensive cooking guide for beginners.",
    },
    {
        "name": "Chocolate Cereal",
        "price": Decimal("4.00"),
        "stock": 80,
        "sizes": [],
        "image_url": "https://images.unsplash.com/photo-1613478881183-b3a7c633c8e1?auto=format&fit=crop&w=600&q=80",
        "description": "Crunchy breakfast cereal with chocolate flavor.",
    },
]


class Database:
    """
    Owns the engine and session factory for one database URL.

    The application opens it at startup and closes it at shutdown; request
    handlers reach it through ``app.state.database``.
    """

    def __init__(self, url: str):
        """
        Initialize database holder.

        Args:
            url: SQLAlchemy database URL (SQLite or PostgreSQL)
        """
        self.url = url
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def open(self) -> Engine:
        """Create the engine and session factory."""
        if self.engine is not None:
            return self.engine

        url = make_url(self.url)
        if url.get_backend_name() == "sqlite":
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url.database in (None, "", ":memory:"):
                # A single shared connection keeps the in-memory database alive
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(self.url, **kwargs)
        else:
            self.engine = create_engine(
                self.url,
                pool_size=10,
                max_overflow=20,
                pool_pre_ping=True,  # Verify connections before use
                pool_recycle=3600,  # Recycle connections after 1 hour
                pool_timeout=30,  # Wait max 30 seconds for a connection
            )

        self._session_factory = sessionmaker(autoflush=False, bind=self.engine)
        logger.info("Database engine opened", extra={"backend": url.get_backend_name()})
        return self.engine

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None
        logger.info("Database engine closed")

    def session(self) -> Session:
        """Create a new session bound to the open engine."""
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        return self._session_factory()

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def table_names(self) -> List[str]:
        """List the tables present in the database."""
        return sorted(inspect(self.engine).get_table_names())

    def seed_demo_data(self) -> None:
        """Insert demo accounts and products if the catalog is empty."""
        db = self.session()
        try:
            if db.query(Product).count() > 0:
                return

            users = {}
            for data in DEMO_USERS:
                user = db.query(User).filter(User.username == data["username"]).first()
                if user is None:
                    user = User(**data)
                    db.add(user)
                users[data["role"]] = user
            db.flush()

            seller = users[UserRole.SELLER]
            db.add_all(Product(seller_id=seller.id, **data) for data in DEMO_PRODUCTS)
            db.commit()
            logger.info("Seeded database with demo data", extra={
                "product_count": len(DEMO_PRODUCTS),
                "user_count": len(DEMO_USERS)
            })
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
