"""Products API router."""
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from opentelemetry import trace

from auth import require_seller
from database import get_db
from dependencies import get_catalog_service
from models import User
from monitoring import product_views_counter
from schemas import ProductCreate, ProductResponse, ProductUpdate
from services.catalog_service import CatalogService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
def list_products(
    seller_id: Optional[int] = Query(None, alias="sellerId", gt=0, description="Only this seller's products"),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """List the catalog, newest products first."""
    products = catalog.list_products(db, seller_id=seller_id)

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))

    product_views_counter.add(1, {"view": "catalog"})
    return products


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int = Path(..., gt=0, description="Product ID"),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Get product details."""
    product = catalog.require_product(db, product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    product_views_counter.add(1, {"view": "detail"})
    return product


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(
    request: ProductCreate,
    db: Session = Depends(get_db),
    seller: User = Depends(require_seller),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Add a product to the acting seller's catalog."""
    return catalog.create_product(db, seller, request)


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    request: ProductUpdate,
    product_id: int = Path(..., gt=0, description="Product ID"),
    db: Session = Depends(get_db),
    seller: User = Depends(require_seller),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Edit a product owned by the acting seller."""
    return catalog.update_product(db, seller, product_id, request)
