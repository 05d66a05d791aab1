from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Text, Integer, CheckConstraint, Enum as SAEnum
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from .errors import InsufficientStock, InvalidState

CENTS = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, the only clock the services use."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS)


class Base(DeclarativeBase):
    pass


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELED = "CANCELED"


class User(Base):
    __tablename__ = "users"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[Role] = mapped_column(SAEnum(Role, native_enum=False, length=20), default=Role.USER)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    category: Mapped[str] = mapped_column(String(100), index=True)
    stock: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
    # Bumped by the ORM on every UPDATE; a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def has_stock(self, quantity: int) -> bool:
        return self.stock >= quantity

    def deduct_stock(self, quantity: int, now: datetime) -> None:
        if not self.has_stock(quantity):
            raise InsufficientStock(self.name, self.stock, quantity)
        self.stock -= quantity
        self.updated_at = now


class Order(Base):
    __tablename__ = "orders"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), index=True)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, native_enum=False, length=20), default=OrderStatus.PENDING, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    # Related rows are never fetched implicitly; repositories load them eagerly
    user: Mapped[User] = relationship("User", lazy="raise")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING

    def add_item(self, product: Product, quantity: int) -> "OrderItem":
        item = OrderItem(
            product=product,
            product_id=product.id,
            quantity=quantity,
            unit_price=to_money(product.price),
            position=len(self.items),
        )
        self.items.append(item)
        return item

    def calculate_total(self) -> Decimal:
        return to_money(sum((item.subtotal for item in self.items), Decimal("0")))

    def require_pending(self, action: str) -> None:
        if not self.is_pending:
            raise InvalidState(
                f"Only pending orders can be {action}. Current status: {self.status.value}",
                {"status": self.status.value},
            )

    def mark_paid(self, now: datetime) -> None:
        self.require_pending("paid")
        self.status = OrderStatus.PAID
        self.paid_at = now
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        self.require_pending("canceled")
        self.status = OrderStatus.CANCELED
        self.updated_at = now


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("products.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    quantity: Mapped[int] = mapped_column(Integer)
    # Price captured when the order was created; never re-read from the product
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    order: Mapped[Order] = relationship("Order", back_populates="items", lazy="raise")
    product: Mapped[Product] = relationship("Product", lazy="raise")

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)
