"""Pytest fixtures: test client, DB en memoria (SQLite), usuarios con token y fábricas."""
import os
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

# SQLite en memoria para tests (antes de importar la app)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SHIPPING_COST", "5000")
# Límites holgados; test_rate_limit cuenta contra estos valores
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "120")
os.environ.setdefault("RATE_LIMIT_WRITE_PER_MINUTE", "30")

import app.models  # noqa: E402,F401
from app.core.clock import utcnow  # noqa: E402
from app.core.database import engine  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Coupon, Product, User  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schema():
    """Tablas nuevas y contadores de rate limit en cero por test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    limiter.reset()
    yield


@pytest.fixture(scope="function")
def client():
    """TestClient; lifespan ejecuta init_db sobre la misma conexión en memoria."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: str = "user", **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"user{counter['n']}@example.com"),
            username=kwargs.pop("username", f"user{counter['n']}"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", email="admin@example.com", username="admin")


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def auth_headers(user):
    return _headers(user)


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def headers_for():
    return _headers


@pytest.fixture
def make_product(db, admin):
    counter = {"n": 0}

    def _make(price: float = 25000, stock: int = 20, category: str = "Camisas", **kwargs) -> Product:
        counter["n"] += 1
        product = Product(
            name=kwargs.pop("name", f"Producto {counter['n']}"),
            code=kwargs.pop("code", f"PRD-{counter['n']:03d}"),
            price=price,
            stock=stock,
            category=category,
            created_by=admin.id,
            **kwargs,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_coupon(db, admin):
    def _make(code: str = "DESC10", type: str = "percentage", value: float = 10, **kwargs) -> Coupon:
        now = utcnow()
        coupon = Coupon(
            code=code,
            name=kwargs.pop("name", f"Cupón {code}"),
            type=type,
            value=value,
            valid_from=kwargs.pop("valid_from", now - timedelta(days=1)),
            valid_until=kwargs.pop("valid_until", now + timedelta(days=30)),
            created_by=admin.id,
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make
