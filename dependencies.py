"""Dependency injection for services."""
from typing import Any
from fastapi import Depends, Request

from services.account_service import AccountService
from services.catalog_service import CatalogService
from services.order_service import OrderService


def get_database(request: Request) -> Any:
    """Get the open database from app state."""
    return request.app.state.database


def get_account_service() -> AccountService:
    """Get account service instance."""
    return AccountService()


def get_catalog_service() -> CatalogService:
    """Get catalog service instance."""
    return CatalogService()


def get_order_service(
    catalog_service: CatalogService = Depends(get_catalog_service),
    account_service: AccountService = Depends(get_account_service)
) -> OrderService:
    """Get order service instance."""
    return OrderService(catalog_service, account_service)
