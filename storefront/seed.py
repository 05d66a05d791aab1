"""Seed an admin account and a starter catalog.

Usage: ``python -m storefront.seed``. Safe to run repeatedly: existing users
(by email) and products (by name) are left untouched.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.core import get_logger, setup_logging
from storefront.core_settings import get_settings
from storefront.domain.models import Product, Role, User, utcnow
from storefront.infrastructure.db import SessionLocal, atomic, init_models
from storefront.infrastructure.security import hash_password

logger = get_logger(__name__)

SAMPLE_PRODUCTS = [
    ("Notebook Pro 14", "14-inch laptop, 16GB RAM, 512GB SSD", Decimal("3500.00"), "Electronics", 10),
    ("Wireless Mouse", "Ergonomic 2.4GHz mouse", Decimal("89.90"), "Electronics", 150),
    ("Mechanical Keyboard", "Tenkeyless, brown switches", Decimal("459.00"), "Electronics", 40),
    ("Espresso Maker", "15 bar pump espresso machine", Decimal("1299.99"), "Home", 12),
    ("Running Shoes", "Lightweight road running shoes", Decimal("549.50"), "Sports", 35),
]


def seed(db: Session) -> dict:
    settings = get_settings()
    # Login looks emails up lower-cased
    admin_email = settings.ADMIN_EMAIL.lower()
    created = {"users": 0, "products": 0}
    now = utcnow()
    with atomic(db):
        if db.scalars(select(User).where(User.email == admin_email)).first() is None:
            db.add(User(
                name="Administrator",
                email=admin_email,
                password_hash=hash_password(settings.ADMIN_PASSWORD),
                role=Role.ADMIN,
                created_at=now,
                updated_at=now,
            ))
            created["users"] += 1

        existing = set(db.scalars(select(Product.name)))
        for name, description, price, category, stock in SAMPLE_PRODUCTS:
            if name in existing:
                continue
            db.add(Product(
                name=name,
                description=description,
                price=price,
                category=category,
                stock=stock,
                created_at=now,
                updated_at=now,
            ))
            created["products"] += 1
    return created


def main() -> None:
    settings = get_settings()
    setup_logging(service_name=f"{settings.SERVICE_NAME}-seed", level=settings.LOG_LEVEL)
    init_models()
    db = SessionLocal()
    try:
        created = seed(db)
    finally:
        db.close()
    logger.info(f"Seed complete: {created['users']} user(s), {created['products']} product(s) created")


if __name__ == "__main__":
    main()
