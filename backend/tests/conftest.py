"""Shared test fixtures.

Every test gets its own in-memory SQLite database built from the model
metadata, so tests never pollute each other or a real database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import backend.app.models  # noqa: F401
from backend.app.api.v1.endpoints.auth import login_limiter
from backend.app.core.database import Base, get_db
from backend.app.core.security import create_access_token, get_password_hash
from backend.app.main import app
from backend.app.models.inventory import Product, ProductUnit
from backend.app.models.merchant import Merchant, MerchantSettings
from backend.app.models.outlet import Outlet
from backend.app.models.pos import PaymentMethod, SalesTransaction, TransactionItem
from backend.app.models.user import RoleEnum, User, UserStatus
from backend.app.services.cart import cart_store

PASSWORD = "secret123"


# ─── DB session on a throwaway database ──────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the per-test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_process_state() -> Generator[None, None, None]:
    """Carts and rate-limit counters live in process memory."""
    login_limiter.reset()
    cart_store.clear()
    yield
    login_limiter.reset()
    cart_store.clear()


# ─── Merchant & outlets ──────────────────────────────────────────────────────


@pytest.fixture()
def merchant(db: Session) -> Merchant:
    m = Merchant(name="Toko Maju")
    m.settings = MerchantSettings(tax_rate=Decimal("11"), discount_rate=Decimal("5"))
    db.add(m)
    db.commit()
    return m


@pytest.fixture()
def other_merchant(db: Session) -> Merchant:
    m = Merchant(name="Warung Sebelah")
    m.settings = MerchantSettings(tax_rate=Decimal("0"), discount_rate=Decimal("0"))
    db.add(m)
    db.commit()
    return m


@pytest.fixture()
def outlet_a(db: Session, merchant: Merchant) -> Outlet:
    o = Outlet(name="Outlet A", address="Jl. Merdeka 1", merchant_id=merchant.id)
    db.add(o)
    db.commit()
    return o


@pytest.fixture()
def outlet_b(db: Session, merchant: Merchant) -> Outlet:
    o = Outlet(name="Outlet B", address="Jl. Sudirman 2", merchant_id=merchant.id)
    db.add(o)
    db.commit()
    return o


# ─── Users ───────────────────────────────────────────────────────────────────


def _user(
    db: Session,
    *,
    email: str,
    name: str,
    role: RoleEnum,
    merchant_id=None,
    status: UserStatus = UserStatus.ACTIVE,
    outlets: list[Outlet] | None = None,
) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
        status=status,
        merchant_id=merchant_id,
    )
    user.outlets = list(outlets or [])
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def superadmin_user(db: Session) -> User:
    return _user(db, email="root@kasir.test", name="Root", role=RoleEnum.SUPERADMIN)


@pytest.fixture()
def admin_user(db: Session, merchant: Merchant) -> User:
    return _user(
        db, email="admin@maju.test", name="Admin Maju", role=RoleEnum.ADMIN,
        merchant_id=merchant.id,
    )


@pytest.fixture()
def kasir_user(db: Session, merchant: Merchant, outlet_a: Outlet) -> User:
    return _user(
        db, email="siti@maju.test", name="Siti", role=RoleEnum.KASIR,
        merchant_id=merchant.id, outlets=[outlet_a],
    )


@pytest.fixture()
def kasir_b_user(db: Session, merchant: Merchant, outlet_b: Outlet) -> User:
    return _user(
        db, email="budi@maju.test", name="Budi", role=RoleEnum.KASIR,
        merchant_id=merchant.id, outlets=[outlet_b],
    )


@pytest.fixture()
def superadmin_token(superadmin_user: User) -> str:
    return create_access_token(subject=str(superadmin_user.id))


@pytest.fixture()
def admin_token(admin_user: User) -> str:
    return create_access_token(subject=str(admin_user.id))


@pytest.fixture()
def kasir_token(kasir_user: User, outlet_a: Outlet) -> str:
    return create_access_token(subject=str(kasir_user.id), outlet_id=str(outlet_a.id))


@pytest.fixture()
def kasir_b_token(kasir_b_user: User, outlet_b: Outlet) -> str:
    return create_access_token(subject=str(kasir_b_user.id), outlet_id=str(outlet_b.id))


def auth(token: str) -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Products ────────────────────────────────────────────────────────────────


def make_product(
    db: Session,
    merchant: Merchant,
    *,
    name: str,
    price: str,
    stock: int,
    barcode: str | None = None,
) -> Product:
    p = Product(name=name, barcode=barcode, merchant_id=merchant.id)
    p.units = [
        ProductUnit(name="pcs", price=Decimal(price), stock=stock, is_base_unit=True, position=0),
    ]
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def product_kopi(db: Session, merchant: Merchant) -> Product:
    return make_product(db, merchant, name="Kopi Susu", price="18000", stock=10, barcode="8991001")


@pytest.fixture()
def product_roti(db: Session, merchant: Merchant) -> Product:
    return make_product(db, merchant, name="Roti Bakar", price="12500", stock=2, barcode="8991002")


# ─── Sales ───────────────────────────────────────────────────────────────────


def make_sale(
    db: Session,
    *,
    merchant: Merchant,
    outlet: Outlet,
    kasir: User,
    amount: str,
    timestamp: datetime,
    method: PaymentMethod = PaymentMethod.CASH,
) -> SalesTransaction:
    total = Decimal(amount)
    txn = SalesTransaction(
        merchant_id=merchant.id,
        outlet_id=outlet.id,
        kasir_id=kasir.id,
        outlet_name=outlet.name,
        kasir_name=kasir.name,
        subtotal=total,
        discount_amount=Decimal("0"),
        tax_amount=Decimal("0"),
        total_amount=total,
        payment_method=method,
        cash_received=total if method == PaymentMethod.CASH else None,
        change_given=Decimal("0") if method == PaymentMethod.CASH else None,
        timestamp=timestamp,
    )
    txn.items.append(
        TransactionItem(
            position=0,
            product_id=uuid.uuid4(),
            product_name="Item",
            unit_name="pcs",
            quantity=1,
            price_per_unit=total,
            total_price=total,
        )
    )
    db.add(txn)
    db.commit()
    return txn


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
