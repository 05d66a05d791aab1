import os

# Must be set before anything imports storefront settings or the engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "storefront-test-secret-with-32-plus-bytes")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("REDIS_URL", None)

from decimal import Decimal

import bcrypt
import pytest
from fastapi.testclient import TestClient

from storefront.domain.models import Base, Product, Role, User, utcnow
from storefront.infrastructure.cache import get_catalog_cache
from storefront.infrastructure.db import SessionLocal, engine
from storefront.infrastructure.security import create_access_token
from storefront.main import app


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    get_catalog_cache().invalidate()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def other_db():
    """A second session, standing in for a concurrent request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_user(db, name="Alice", email="alice@shop.com", role=Role.USER, password="secret123") -> User:
    now = utcnow()
    user = User(
        name=name,
        email=email,
        # Low cost factor keeps the suite fast
        password_hash=bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=4)).decode(),
        role=role,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    return user


def make_product(db, name="Notebook", price="3500.00", stock=10, category="Electronics") -> Product:
    now = utcnow()
    product = Product(
        name=name,
        description=f"{name} description",
        price=Decimal(price),
        category=category,
        stock=stock,
        created_at=now,
        updated_at=now,
    )
    db.add(product)
    db.commit()
    return product


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role.value)}"}


@pytest.fixture
def alice(db):
    return make_user(db)


@pytest.fixture
def bob(db):
    return make_user(db, name="Bob", email="bob@shop.com")


@pytest.fixture
def admin(db):
    return make_user(db, name="Admin", email="admin@shop.com", role=Role.ADMIN)


@pytest.fixture
def notebook(db):
    return make_product(db)
