"""Data access for users, products and orders.

Reads that the order engine depends on are spelled out here with explicit
eager-loading options; the mapped relationships themselves refuse to lazy load.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
import uuid

from sqlalchemy import select, func
from sqlalchemy.orm import Session, joinedload, selectinload

from storefront.domain.models import User, Product, Order, OrderItem, OrderStatus


def _order_with_items():
    return (
        joinedload(Order.user),
        selectinload(Order.items).joinedload(OrderItem.product),
    )


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(select(User).where(User.email == email)).first()

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, product_id: uuid.UUID) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def find_many(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.scalars(select(Product).where(Product.id.in_(ids)))
        return {p.id: p for p in rows}

    def lock_many(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        """Re-read products under FOR UPDATE, always locking in id order."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        stmt = (
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {p.id: p for p in self.db.scalars(stmt)}

    def list_all(self) -> list[Product]:
        return list(self.db.scalars(select(Product).order_by(Product.name)))

    def find_by_category(self, category: str) -> list[Product]:
        return list(self.db.scalars(select(Product).where(Product.category == category).order_by(Product.name)))

    def find_in_stock(self) -> list[Product]:
        return list(self.db.scalars(select(Product).where(Product.stock > 0).order_by(Product.name)))

    def find_low_stock(self, limit: int) -> list[Product]:
        stmt = select(Product).where(Product.stock > 0, Product.stock < limit).order_by(Product.stock)
        return list(self.db.scalars(stmt))

    def is_referenced(self, product_id: uuid.UUID) -> bool:
        count = self.db.scalar(select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id))
        return bool(count)

    def save(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def delete(self, product: Product) -> None:
        self.db.delete(product)
        self.db.flush()


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_with_items_by_id(self, order_id: uuid.UUID, for_update: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id).options(*_order_with_items())
        if for_update:
            stmt = stmt.with_for_update(of=Order).execution_options(populate_existing=True)
        return self.db.scalars(stmt).unique().first()

    def find_by_user_with_items(self, user_id: uuid.UUID) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .options(*_order_with_items())
            .order_by(Order.created_at.desc())
        )
        return list(self.db.scalars(stmt).unique())

    def save(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    # Aggregates used by the reporting reader; they only ever look at PAID orders

    def top_buyers(self, limit: int) -> list:
        order_count = func.count(Order.id)
        total_spent = func.sum(Order.total_amount)
        stmt = (
            select(User.id, User.name, User.email, order_count.label("order_count"), total_spent.label("total_spent"))
            .join(Order, Order.user_id == User.id)
            .where(Order.status == OrderStatus.PAID)
            .group_by(User.id, User.name, User.email)
            .order_by(order_count.desc(), total_spent.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt))

    def average_ticket_by_user(self) -> list:
        average = func.avg(Order.total_amount)
        stmt = (
            select(
                User.id,
                User.name,
                User.email,
                func.count(Order.id).label("order_count"),
                average.label("average_ticket"),
                func.sum(Order.total_amount).label("total_spent"),
            )
            .join(Order, Order.user_id == User.id)
            .where(Order.status == OrderStatus.PAID)
            .group_by(User.id, User.name, User.email)
            .order_by(average.desc())
        )
        return list(self.db.execute(stmt))

    def revenue_between(self, start: datetime, end: datetime, end_inclusive: bool = True) -> Decimal:
        upper = Order.paid_at <= end if end_inclusive else Order.paid_at < end
        stmt = select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.status == OrderStatus.PAID,
            Order.paid_at >= start,
            upper,
        )
        return Decimal(self.db.scalar(stmt) or 0)
