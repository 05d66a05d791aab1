from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from storefront.domain.models import OrderStatus, Role


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    price: Decimal = Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)
    category: str = Field(min_length=1, max_length=100)
    stock: int = Field(ge=0)


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    stock: int
    created_at: datetime
    updated_at: datetime


class OrderItemCreate(BaseModel):
    product_id: uuid.UUID
    # Range is checked by the order engine so violations surface as InvalidRequest
    quantity: int


class OrderCreate(BaseModel):
    items: list[OrderItemCreate]


class OrderItemRead(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    user_name: str
    status: OrderStatus
    total_amount: Decimal
    items: list[OrderItemRead]
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.USER


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: uuid.UUID
    name: str
    email: str
    role: Role


class BuyerSummary(BaseModel):
    user_id: uuid.UUID
    name: str
    email: str
    order_count: int
    total_spent: Decimal


class AverageTicket(BaseModel):
    user_id: uuid.UUID
    name: str
    email: str
    order_count: int
    average_ticket: Decimal
    total_spent: Decimal


class RevenueReport(BaseModel):
    period: str
    start: datetime
    end: datetime
    total_revenue: Decimal
