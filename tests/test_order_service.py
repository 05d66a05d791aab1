from decimal import Decimal
import uuid

import pytest
from sqlalchemy import func, select

from conftest import make_product
from storefront.application.order_service import OrderService
from storefront.application.schemas import OrderCreate, OrderItemCreate
from storefront.domain.errors import Forbidden, InsufficientStock, InvalidRequest, InvalidState, ResourceNotFound
from storefront.domain.models import Order, OrderItem, OrderStatus, Product


def order_request(*lines) -> OrderCreate:
    return OrderCreate(items=[OrderItemCreate(product_id=p.id, quantity=q) for p, q in lines])


def stock_of(db, product) -> int:
    return db.scalar(select(Product.stock).where(Product.id == product.id))


def count_rows(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def test_create_order_snapshots_price_and_keeps_stock(db, alice, notebook):
    view = OrderService(db).create(alice.id, order_request((notebook, 2)))

    assert view.status == OrderStatus.PENDING
    assert view.total_amount == Decimal("7000.00")
    assert view.paid_at is None
    assert view.user_name == "Alice"
    assert [(i.product_name, i.quantity, i.unit_price, i.subtotal) for i in view.items] == [
        ("Notebook", 2, Decimal("3500.00"), Decimal("7000.00"))
    ]
    assert stock_of(db, notebook) == 10


def test_create_order_keeps_line_order_and_exact_total(db, alice):
    pen = make_product(db, name="Pen", price="0.10", stock=100)
    pad = make_product(db, name="Pad", price="0.20", stock=100)

    view = OrderService(db).create(alice.id, order_request((pad, 1), (pen, 3), (pad, 2)))

    assert [i.product_name for i in view.items] == ["Pad", "Pen", "Pad"]
    # 0.20 + 0.30 + 0.40 in binary floating point would not be exactly 0.90
    assert view.total_amount == Decimal("0.90")
    assert view.total_amount == sum(i.unit_price * i.quantity for i in view.items)


@pytest.mark.parametrize("quantities", [[], [0], [-3], [1, 0]])
def test_create_order_rejects_malformed_lines(db, alice, notebook, quantities):
    request = OrderCreate(items=[OrderItemCreate(product_id=notebook.id, quantity=q) for q in quantities])

    with pytest.raises(InvalidRequest):
        OrderService(db).create(alice.id, request)

    assert count_rows(db, Order) == 0


def test_create_order_unknown_product_persists_nothing(db, alice, notebook):
    request = OrderCreate(items=[
        OrderItemCreate(product_id=notebook.id, quantity=1),
        OrderItemCreate(product_id=uuid.uuid4(), quantity=1),
    ])

    with pytest.raises(ResourceNotFound):
        OrderService(db).create(alice.id, request)

    assert count_rows(db, Order) == 0
    assert count_rows(db, OrderItem) == 0


def test_create_order_insufficient_stock_persists_nothing(db, alice, notebook):
    with pytest.raises(InsufficientStock) as excinfo:
        OrderService(db).create(alice.id, order_request((notebook, 100)))

    err = excinfo.value
    assert (err.product_name, err.available, err.requested) == ("Notebook", 10, 100)
    assert count_rows(db, Order) == 0
    assert stock_of(db, notebook) == 10


def test_create_order_sums_repeated_product_lines_against_stock(db, alice, notebook):
    with pytest.raises(InsufficientStock) as excinfo:
        OrderService(db).create(alice.id, order_request((notebook, 6), (notebook, 5)))

    assert excinfo.value.requested == 11
    assert count_rows(db, Order) == 0


def test_price_change_after_creation_does_not_touch_order(db, other_db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))

    product = other_db.get(Product, notebook.id)
    product.price = Decimal("9999.99")
    other_db.commit()

    paid = service.process_payment(created.id, alice.id)
    assert paid.total_amount == Decimal("7000.00")
    assert paid.items[0].unit_price == Decimal("3500.00")


def test_payment_deducts_stock_and_marks_paid(db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))

    paid = service.process_payment(created.id, alice.id)

    assert paid.status == OrderStatus.PAID
    assert paid.paid_at is not None
    assert paid.total_amount == Decimal("7000.00")
    assert stock_of(db, notebook) == 8


def test_payment_of_multiple_lines_deducts_every_product(db, alice, notebook):
    mouse = make_product(db, name="Mouse", price="89.90", stock=5)
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 3), (mouse, 5)))

    service.process_payment(created.id, alice.id)

    assert stock_of(db, notebook) == 7
    assert stock_of(db, mouse) == 0


def test_payment_with_drained_stock_cancels_and_leaves_stock(db, other_db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))

    # Another request sells most of the stock in the meantime
    product = other_db.get(Product, notebook.id)
    product.stock = 1
    other_db.commit()

    with pytest.raises(InsufficientStock) as excinfo:
        service.process_payment(created.id, alice.id)

    assert "canceled" in str(excinfo.value).lower()
    assert excinfo.value.available == 1
    order = service.get(created.id, alice.id)
    assert order.status == OrderStatus.CANCELED
    assert order.paid_at is None
    assert stock_of(db, notebook) == 1


def test_payment_failure_on_later_line_rolls_back_earlier_deductions(db, other_db, alice, notebook):
    mouse = make_product(db, name="Mouse", price="89.90", stock=5)
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2), (mouse, 5)))

    product = other_db.get(Product, mouse.id)
    product.stock = 4
    other_db.commit()

    with pytest.raises(InsufficientStock):
        service.process_payment(created.id, alice.id)

    assert stock_of(db, notebook) == 10
    assert stock_of(db, mouse) == 4
    assert service.get(created.id, alice.id).status == OrderStatus.CANCELED


def test_unexpected_failure_during_settlement_cancels_order(db, alice, notebook, monkeypatch):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))

    def explode(self, quantity, now):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(Product, "deduct_stock", explode)

    with pytest.raises(RuntimeError):
        service.process_payment(created.id, alice.id)

    monkeypatch.undo()
    assert service.get(created.id, alice.id).status == OrderStatus.CANCELED
    assert stock_of(db, notebook) == 10


def test_second_payment_is_rejected(db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))
    service.process_payment(created.id, alice.id)

    with pytest.raises(InvalidState) as excinfo:
        service.process_payment(created.id, alice.id)

    assert "PAID" in str(excinfo.value)
    assert service.get(created.id, alice.id).status == OrderStatus.PAID
    assert stock_of(db, notebook) == 8


def test_payment_seen_by_a_concurrent_session_blocks_second_payment(db, other_db, alice, notebook):
    created = OrderService(db).create(alice.id, order_request((notebook, 2)))
    OrderService(other_db).process_payment(created.id, alice.id)

    with pytest.raises(InvalidState):
        OrderService(db).process_payment(created.id, alice.id)

    assert stock_of(db, notebook) == 8


def test_cancel_then_pay_is_rejected(db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 2)))

    canceled = service.cancel(created.id, alice.id)
    assert canceled.status == OrderStatus.CANCELED
    assert canceled.paid_at is None

    with pytest.raises(InvalidState):
        service.process_payment(created.id, alice.id)
    with pytest.raises(InvalidState):
        service.cancel(created.id, alice.id)
    assert stock_of(db, notebook) == 10


def test_cancel_paid_order_is_rejected(db, alice, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 1)))
    service.process_payment(created.id, alice.id)

    with pytest.raises(InvalidState):
        service.cancel(created.id, alice.id)

    assert service.get(created.id, alice.id).status == OrderStatus.PAID
    assert stock_of(db, notebook) == 9


def test_other_users_cannot_touch_an_order(db, alice, bob, notebook):
    service = OrderService(db)
    created = service.create(alice.id, order_request((notebook, 1)))

    with pytest.raises(Forbidden):
        service.get(created.id, bob.id)
    with pytest.raises(Forbidden):
        service.process_payment(created.id, bob.id)
    with pytest.raises(Forbidden):
        service.cancel(created.id, bob.id)

    order = service.get(created.id, alice.id)
    assert order.status == OrderStatus.PENDING
    assert stock_of(db, notebook) == 10


def test_unknown_order(db, alice):
    service = OrderService(db)
    missing = uuid.uuid4()

    with pytest.raises(ResourceNotFound):
        service.get(missing, alice.id)
    with pytest.raises(ResourceNotFound):
        service.process_payment(missing, alice.id)
    with pytest.raises(ResourceNotFound):
        service.cancel(missing, alice.id)


def test_list_my_orders_only_returns_own_orders(db, alice, bob, notebook):
    service = OrderService(db)
    first = service.create(alice.id, order_request((notebook, 1)))
    second = service.create(alice.id, order_request((notebook, 2)))
    service.create(bob.id, order_request((notebook, 3)))

    orders = service.list_for_user(alice.id)

    assert {o.id for o in orders} == {first.id, second.id}
    assert all(o.user_id == alice.id for o in orders)
    for order in orders:
        assert order.total_amount == sum(i.subtotal for i in order.items)


def test_product_stock_never_goes_negative(db, other_db, alice, notebook):
    service = OrderService(db)
    first = service.create(alice.id, order_request((notebook, 6)))
    second = service.create(alice.id, order_request((notebook, 6)))

    service.process_payment(first.id, alice.id)
    with pytest.raises(InsufficientStock):
        service.process_payment(second.id, alice.id)

    assert stock_of(other_db, notebook) == 4
    assert service.get(second.id, alice.id).status == OrderStatus.CANCELED
