"""Tests for order placement."""
from decimal import Decimal

import pytest

from errors import InsufficientStock, InvalidInput, NotFound
from models import Order, OrderStatus, Product, UserRole
from schemas import LineItem, ProductUpdate


def _stock(db, product_id):
    return db.get(Product, product_id).stock


def _order_count(db):
    return db.query(Order).count()


def test_place_order_decrements_stock_and_creates_pending_order(
    db, orders, make_product, buyer, line, customer, seller
):
    product_id = make_product(stock=5)

    result = orders.place_order(db, [line(product_id, 3)], buyer(customer.id))

    assert _stock(db, product_id) == 2
    assert [p.stock for p in result["updated_products"]] == [2]

    created = result["created_orders"]
    assert len(created) == 1
    order = created[0]
    assert order.quantity == 3
    assert order.status == OrderStatus.PENDING
    assert order.product_id == product_id
    assert order.seller_id == seller.id
    assert order.customer_id == customer.id
    assert order.full_name == "Ada Buyer"
    assert order.payment_method == "cash"
    assert _order_count(db) == 1


def test_order_keeps_product_snapshot(db, orders, catalog, make_product, buyer, line, seller):
    product_id = make_product(stock=5, name="Classic Tee", price="10.00")

    order = orders.place_order(db, [line(product_id, 1)], buyer())["created_orders"][0]
    catalog.update_product(db, seller, product_id, ProductUpdate(name="Vintage Tee", price=Decimal("25")))

    db.refresh(order)
    assert order.product_name == "Classic Tee"
    assert order.product_price == Decimal("10.00")
    assert order.product_image_url == "https://img.example/tee.jpg"


def test_insufficient_stock_leaves_stock_unchanged(db, orders, make_product, buyer, line):
    product_id = make_product(stock=0)

    with pytest.raises(InsufficientStock) as excinfo:
        orders.place_order(db, [line(product_id, 1)], buyer())

    assert excinfo.value.product_id == product_id
    assert "Classic Tee" in str(excinfo.value)
    assert _stock(db, product_id) == 0
    assert _order_count(db) == 0


def test_quantity_above_stock_is_rejected(db, orders, make_product, buyer, line):
    product_id = make_product(stock=4)

    with pytest.raises(InsufficientStock):
        orders.place_order(db, [line(product_id, 5)], buyer())

    assert _stock(db, product_id) == 4
    assert _order_count(db) == 0


def test_cart_is_all_or_nothing(db, orders, make_product, buyer, line):
    first = make_product(stock=5, name="Cardboard Box")
    second = make_product(stock=1, name="Toy Bundle")

    with pytest.raises(InsufficientStock) as excinfo:
        orders.place_order(db, [line(first, 2), line(second, 3)], buyer())

    assert excinfo.value.product_id == second
    assert _stock(db, first) == 5
    assert _stock(db, second) == 1
    assert _order_count(db) == 0


def test_repeated_product_lines_are_checked_against_their_total(db, orders, make_product, buyer, line):
    product_id = make_product(stock=3)

    with pytest.raises(InsufficientStock):
        orders.place_order(db, [line(product_id, 2), line(product_id, 2)], buyer())

    assert _stock(db, product_id) == 3


def test_repeated_product_lines_create_one_order_each(db, orders, make_product, buyer, line):
    product_id = make_product(stock=3, sizes=["S", "M"])

    result = orders.place_order(
        db, [line(product_id, 1, size="S"), line(product_id, 2, size="M")], buyer()
    )

    assert _stock(db, product_id) == 0
    assert [o.size for o in result["created_orders"]] == ["S", "M"]
    assert len(result["updated_products"]) == 1


def test_empty_cart_is_invalid(db, orders, buyer):
    with pytest.raises(InvalidInput, match="Cart is empty"):
        orders.place_order(db, [], buyer())


@pytest.mark.parametrize("quantity", [0, -2])
def test_non_positive_quantity_is_invalid(db, orders, make_product, buyer, quantity):
    product_id = make_product(stock=5)
    item = LineItem.model_construct(product_id=product_id, quantity=quantity, size=None)

    with pytest.raises(InvalidInput):
        orders.place_order(db, [item], buyer())

    assert _stock(db, product_id) == 5


def test_unknown_product_is_not_found(db, orders, make_product, buyer, line):
    product_id = make_product(stock=5)

    with pytest.raises(NotFound, match="Product 999 not found"):
        orders.place_order(db, [line(product_id, 1), line(999, 1)], buyer())

    assert _stock(db, product_id) == 5
    assert _order_count(db) == 0


def test_unknown_customer_is_not_found(db, orders, make_product, buyer, line):
    product_id = make_product(stock=5)

    with pytest.raises(NotFound):
        orders.place_order(db, [line(product_id, 1)], buyer(customer_id=4242))

    assert _stock(db, product_id) == 5


def test_unavailable_size_is_invalid(db, orders, make_product, buyer, line):
    product_id = make_product(stock=5, sizes=["S", "M", "L"])

    with pytest.raises(InvalidInput, match="Size 'XL'"):
        orders.place_order(db, [line(product_id, 1, size="XL")], buyer())

    assert _stock(db, product_id) == 5


def test_guest_order_has_no_customer(db, orders, make_product, buyer, line):
    product_id = make_product(stock=5)

    order = orders.place_order(db, [line(product_id, 1)], buyer())["created_orders"][0]

    assert order.customer_id is None


def test_persistence_error_rolls_back_every_line(db, orders, catalog, make_product, buyer, line):
    first = make_product(stock=5, name="Cardboard Box")
    second = make_product(stock=5, name="Toy Bundle")
    real_decrement = catalog.decrement_stock
    calls = []

    def failing_decrement(session, product_id, quantity):
        calls.append(product_id)
        if len(calls) == 2:
            raise RuntimeError("disk full")
        real_decrement(session, product_id, quantity)

    catalog.decrement_stock = failing_decrement

    with pytest.raises(RuntimeError):
        orders.place_order(db, [line(first, 2), line(second, 2)], buyer())

    assert calls == [first, second]
    assert _stock(db, first) == 5
    assert _stock(db, second) == 5
    assert _order_count(db) == 0


def test_stock_taken_by_another_checkout_after_the_locked_read(file_database, orders, catalog, accounts, buyer, line):
    session = file_database.session()
    rival = file_database.session()
    seller = accounts.create_user(session, "seller-one", role=UserRole.SELLER)
    first = Product(seller_id=seller.id, name="Cardboard Box", price=Decimal("1.00"), stock=5, sizes=[])
    second = Product(seller_id=seller.id, name="Toy Bundle", price=Decimal("15.00"), stock=5, sizes=[])
    session.add_all([first, second])
    session.commit()
    first_id, second_id = first.id, second.id
    real_decrement = catalog.decrement_stock

    def decrement_after_rival_sells_out(db, product_id, quantity):
        if product_id == first_id:
            # Another checkout commits between this one's read and its writes
            rival.query(Product).filter(Product.id == second_id).update({Product.stock: 0})
            rival.commit()
        real_decrement(db, product_id, quantity)

    catalog.decrement_stock = decrement_after_rival_sells_out

    try:
        with pytest.raises(InsufficientStock) as excinfo:
            orders.place_order(session, [line(first_id, 2), line(second_id, 1)], buyer())

        assert excinfo.value.product_id == second_id
        check = file_database.session()
        assert _stock(check, first_id) == 5
        assert _stock(check, second_id) == 0
        assert _order_count(check) == 0
        check.close()
    finally:
        rival.close()
        session.close()
