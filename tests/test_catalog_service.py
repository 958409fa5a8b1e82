"""Tests for the catalog store."""
from decimal import Decimal

import pytest

from errors import Forbidden, InsufficientStock, InvalidInput, NotFound
from models import Product
from schemas import ProductCreate, ProductUpdate


def test_create_product_is_owned_by_seller(db, catalog, seller):
    product = catalog.create_product(db, seller, ProductCreate(
        name="  Toy Bundle ",
        price=Decimal("12"),
        stock=7,
        sizes=["S", " M ", "S"]
    ))

    assert product.id is not None
    assert product.seller_id == seller.id
    assert product.name == "Toy Bundle"
    assert product.price == Decimal("12.00")
    assert product.stock == 7
    assert product.sizes == ["S", "M"]


def test_customers_cannot_create_products(db, catalog, customer):
    with pytest.raises(Forbidden):
        catalog.create_product(db, customer, ProductCreate(name="Box", price=Decimal("1")))


def test_update_product_changes_only_given_fields(db, catalog, seller, make_product):
    product_id = make_product(stock=3, sizes=["S"])

    product = catalog.update_product(db, seller, product_id, ProductUpdate(stock=10, sizes=[]))

    assert product.stock == 10
    assert product.sizes == []
    assert product.name == "Classic Tee"
    assert product.price == Decimal("10.00")


def test_update_requires_ownership(db, catalog, other_seller, make_product):
    product_id = make_product(stock=3)

    with pytest.raises(Forbidden):
        catalog.update_product(db, other_seller, product_id, ProductUpdate(stock=1))

    assert db.get(Product, product_id).stock == 3


def test_update_rejects_empty_and_clearing_updates(db, catalog, seller, make_product):
    product_id = make_product(stock=3)

    with pytest.raises(InvalidInput):
        catalog.update_product(db, seller, product_id, ProductUpdate())
    with pytest.raises(InvalidInput):
        catalog.update_product(db, seller, product_id, ProductUpdate(stock=None))


def test_update_unknown_product(db, catalog, seller):
    with pytest.raises(NotFound):
        catalog.update_product(db, seller, 77, ProductUpdate(stock=1))


def test_decrement_stock_is_conditional(db, catalog, make_product):
    product_id = make_product(stock=2)

    catalog.decrement_stock(db, product_id, 2)
    with pytest.raises(InsufficientStock):
        catalog.decrement_stock(db, product_id, 1)
    db.commit()

    assert db.get(Product, product_id).stock == 0


def test_list_products_newest_first_and_by_seller(db, catalog, make_product, other_seller):
    first = make_product(stock=1, name="Cardboard Box")
    second = make_product(stock=1, name="Toy Bundle")
    theirs = make_product(stock=1, name="Cooking Manual", seller_id=other_seller.id)

    assert [p.id for p in catalog.list_products(db)][:3] == sorted([first, second, theirs], reverse=True)
    assert [p.id for p in catalog.list_products(db, seller_id=other_seller.id)] == [theirs]
    assert catalog.get_product(db, 404) is None
    with pytest.raises(NotFound):
        catalog.require_product(db, 404)
