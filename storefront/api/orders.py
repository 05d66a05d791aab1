import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.dependencies import get_current_user
from storefront.application.order_service import OrderService
from storefront.application.schemas import OrderCreate, OrderRead
from storefront.domain.models import User
from storefront.infrastructure.db import get_db

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Create a PENDING order; stock is checked but not deducted."""
    return OrderService(db).create(user.id, payload)


@router.get("/mine", response_model=list[OrderRead])
def list_my_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).list_for_user(user.id)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).get(order_id, user.id)


@router.post("/{order_id}/payment", response_model=OrderRead)
def pay_order(order_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Pay a PENDING order and deduct stock. A stock shortfall cancels the order."""
    return OrderService(db).process_payment(order_id, user.id)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(order_id: uuid.UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).cancel(order_id, user.id)
