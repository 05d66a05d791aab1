"""Order lifecycle engine.

Orders move ``PENDING -> PAID`` or ``PENDING -> CANCELED`` and never leave a
terminal state. Stock is checked when an order is created but only deducted
when it is paid; payment re-reads stock under row locks inside the same
transaction that deducts it and marks the order paid.
"""

from collections import OrderedDict
from typing import Iterable, Optional
import uuid

from sqlalchemy.orm import Session

from shared.core import get_logger
from storefront.domain.errors import Forbidden, InsufficientStock, InvalidRequest, InvalidState, ResourceNotFound
from storefront.domain.models import Order, OrderStatus, utcnow
from storefront.infrastructure.cache import CatalogCache, get_catalog_cache
from storefront.infrastructure.db import atomic
from storefront.infrastructure.repositories import OrderRepository, ProductRepository, UserRepository
from .schemas import OrderCreate, OrderItemCreate, OrderItemRead, OrderRead

logger = get_logger(__name__)


def to_order_read(order: Order) -> OrderRead:
    return OrderRead(
        id=order.id,
        user_id=order.user_id,
        user_name=order.user.name,
        status=order.status,
        total_amount=order.total_amount,
        items=[
            OrderItemRead(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
        paid_at=order.paid_at,
    )


def _demand_by_product(lines: Iterable) -> "OrderedDict[uuid.UUID, int]":
    """Sum quantities per product, keeping first-seen order."""
    demand: "OrderedDict[uuid.UUID, int]" = OrderedDict()
    for line in lines:
        demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
    return demand


class OrderService:
    def __init__(self, db: Session, cache: Optional[CatalogCache] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.users = UserRepository(db)
        self.cache = cache or get_catalog_cache()

    def create(self, user_id: uuid.UUID, data: OrderCreate) -> OrderRead:
        self._validate_lines(data.items)
        logger.info(f"Creating order for user {user_id} with {len(data.items)} line(s)")

        with atomic(self.db):
            user = self.users.find_by_id(user_id)
            if user is None:
                raise ResourceNotFound(f"User not found with id: {user_id}")

            products = self.products.find_many(line.product_id for line in data.items)
            for product_id, requested in _demand_by_product(data.items).items():
                product = products.get(product_id)
                if product is None:
                    raise ResourceNotFound(f"Product not found with id: {product_id}")
                if not product.has_stock(requested):
                    raise InsufficientStock(product.name, product.stock, requested)

            now = utcnow()
            order = Order(user=user, user_id=user.id, status=OrderStatus.PENDING, created_at=now, updated_at=now)
            for line in data.items:
                order.add_item(products[line.product_id], line.quantity)
            order.total_amount = order.calculate_total()
            self.orders.save(order)

        logger.info(f"Order {order.id} created, total {order.total_amount}")
        return to_order_read(order)

    def process_payment(self, order_id: uuid.UUID, user_id: uuid.UUID) -> OrderRead:
        logger.info(f"Processing payment for order {order_id} (user {user_id})")
        try:
            with atomic(self.db):
                order = self._get_owned(order_id, user_id, "pay", for_update=True)
                order.require_pending("paid")
                self._settle(order)
        except (ResourceNotFound, Forbidden, InvalidState):
            raise
        except Exception:
            logger.error(f"Payment of order {order_id} failed, canceling order", exc_info=True)
            self._force_cancel(order_id)
            raise

        self.cache.invalidate()
        logger.info(f"Order {order_id} paid")
        return to_order_read(order)

    def cancel(self, order_id: uuid.UUID, user_id: uuid.UUID) -> OrderRead:
        logger.info(f"Canceling order {order_id} (user {user_id})")
        with atomic(self.db):
            order = self._get_owned(order_id, user_id, "cancel", for_update=True)
            order.cancel(utcnow())
        logger.info(f"Order {order_id} canceled")
        return to_order_read(order)

    def list_for_user(self, user_id: uuid.UUID) -> list[OrderRead]:
        return [to_order_read(o) for o in self.orders.find_by_user_with_items(user_id)]

    def get(self, order_id: uuid.UUID, user_id: uuid.UUID) -> OrderRead:
        return to_order_read(self._get_owned(order_id, user_id, "view"))

    def _validate_lines(self, lines: list[OrderItemCreate]) -> None:
        if not lines:
            raise InvalidRequest("An order must contain at least one item")
        for index, line in enumerate(lines):
            if line.quantity < 1:
                raise InvalidRequest(
                    f"Quantity must be at least 1 (item {index}: {line.quantity})",
                    {"field": f"items.{index}.quantity"},
                )

    def _get_owned(self, order_id: uuid.UUID, user_id: uuid.UUID, action: str, for_update: bool = False) -> Order:
        order = self.orders.find_with_items_by_id(order_id, for_update=for_update)
        if order is None:
            raise ResourceNotFound(f"Order not found with id: {order_id}")
        if order.user_id != user_id:
            raise Forbidden(f"You are not allowed to {action} this order")
        return order

    def _settle(self, order: Order) -> None:
        """Re-validate every line against freshly locked stock, then deduct and mark paid."""
        products = self.products.lock_many(item.product_id for item in order.items)
        for product_id, required in _demand_by_product(order.items).items():
            product = products[product_id]
            if not product.has_stock(required):
                raise InsufficientStock(
                    product.name,
                    product.stock,
                    required,
                    message=(
                        f"Order canceled: insufficient stock for product '{product.name}'. "
                        f"Available: {product.stock}, required: {required}"
                    ),
                )

        now = utcnow()
        for item in order.items:
            products[item.product_id].deduct_stock(item.quantity, now)
        order.mark_paid(now)

    def _force_cancel(self, order_id: uuid.UUID) -> None:
        """Leave the order CANCELED after a failed payment; stock changes were rolled back."""
        try:
            with atomic(self.db):
                order = self.orders.find_with_items_by_id(order_id, for_update=True)
                if order is not None and order.is_pending:
                    order.cancel(utcnow())
        except Exception:
            logger.error(f"Could not cancel order {order_id} after failed payment", exc_info=True)
