import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.dependencies import require_admin
from storefront.application.product_service import ProductService
from storefront.application.schemas import ProductCreate, ProductRead
from storefront.infrastructure.db import get_db

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/", response_model=list[ProductRead])
def list_products(db: Session = Depends(get_db)):
    return ProductService(db).list_products()


@router.get("/in-stock", response_model=list[ProductRead])
def list_in_stock(db: Session = Depends(get_db)):
    return ProductService(db).list_in_stock()


@router.get("/low-stock", response_model=list[ProductRead], dependencies=[Depends(require_admin)])
def list_low_stock(limit: int = Query(10, ge=1), db: Session = Depends(get_db)):
    """Products with some stock left but fewer than ``limit`` units."""
    return ProductService(db).list_low_stock(limit)


@router.get("/category/{category}", response_model=list[ProductRead])
def list_by_category(category: str, db: Session = Depends(get_db)):
    return ProductService(db).list_by_category(category)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db)):
    return ProductService(db).get(product_id)


@router.post("/", response_model=ProductRead, status_code=201, dependencies=[Depends(require_admin)])
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return ProductService(db).create(payload)


@router.put("/{product_id}", response_model=ProductRead, dependencies=[Depends(require_admin)])
def update_product(product_id: uuid.UUID, payload: ProductCreate, db: Session = Depends(get_db)):
    return ProductService(db).update(product_id, payload)


@router.delete("/{product_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_product(product_id: uuid.UUID, db: Session = Depends(get_db)):
    ProductService(db).delete(product_id)
    return None
