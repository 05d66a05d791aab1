from typing import Optional
import uuid

from sqlalchemy.orm import Session

from shared.core import get_logger
from storefront.domain.errors import InvalidState, ResourceNotFound
from storefront.domain.models import Product, to_money, utcnow
from storefront.infrastructure.cache import CatalogCache, get_catalog_cache
from storefront.infrastructure.db import atomic
from storefront.infrastructure.repositories import ProductRepository
from .schemas import ProductCreate, ProductRead

logger = get_logger(__name__)


class ProductService:
    def __init__(self, db: Session, cache: Optional[CatalogCache] = None):
        self.db = db
        self.products = ProductRepository(db)
        self.cache = cache or get_catalog_cache()

    def _cached_list(self, key: str, loader) -> list[ProductRead]:
        cached = self.cache.get(key)
        if cached is not None:
            return [ProductRead.model_validate(p) for p in cached]
        products = [ProductRead.model_validate(p) for p in loader()]
        self.cache.set(key, [p.model_dump(mode="json") for p in products])
        return products

    def list_products(self) -> list[ProductRead]:
        return self._cached_list("catalog:all", self.products.list_all)

    def list_by_category(self, category: str) -> list[ProductRead]:
        return self._cached_list(f"catalog:category:{category}", lambda: self.products.find_by_category(category))

    def list_in_stock(self) -> list[ProductRead]:
        return [ProductRead.model_validate(p) for p in self.products.find_in_stock()]

    def list_low_stock(self, limit: int) -> list[ProductRead]:
        return [ProductRead.model_validate(p) for p in self.products.find_low_stock(limit)]

    def get_or_raise(self, product_id: uuid.UUID) -> Product:
        product = self.products.find_by_id(product_id)
        if product is None:
            raise ResourceNotFound(f"Product not found with id: {product_id}")
        return product

    def get(self, product_id: uuid.UUID) -> ProductRead:
        return ProductRead.model_validate(self.get_or_raise(product_id))

    def create(self, data: ProductCreate) -> ProductRead:
        now = utcnow()
        with atomic(self.db):
            product = Product(
                name=data.name,
                description=data.description,
                price=to_money(data.price),
                category=data.category,
                stock=data.stock,
                created_at=now,
                updated_at=now,
            )
            self.products.save(product)
        self.cache.invalidate()
        logger.info(f"Product {product.id} created: {product.name}")
        return ProductRead.model_validate(product)

    def update(self, product_id: uuid.UUID, data: ProductCreate) -> ProductRead:
        with atomic(self.db):
            product = self.get_or_raise(product_id)
            product.name = data.name
            product.description = data.description
            product.price = to_money(data.price)
            product.category = data.category
            product.stock = data.stock
            product.updated_at = utcnow()
            self.products.save(product)
        self.cache.invalidate()
        logger.info(f"Product {product_id} updated")
        return ProductRead.model_validate(product)

    def delete(self, product_id: uuid.UUID) -> None:
        with atomic(self.db):
            product = self.get_or_raise(product_id)
            if self.products.is_referenced(product_id):
                raise InvalidState("Product is referenced by existing orders and cannot be deleted")
            self.products.delete(product)
        self.cache.invalidate()
        logger.info(f"Product {product_id} deleted")
