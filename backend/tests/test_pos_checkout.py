"""POS cart endpoints and checkout persistence."""
from __future__ import annotations

import threading
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import ValidationError
from backend.app.models.audit import AuditLog
from backend.app.models.inventory import Product, ProductUnit
from backend.app.models.outlet import Outlet
from backend.app.models.pos import PaymentMethod, SalesTransaction
from backend.app.models.user import User
from backend.app.services.access import SessionContext
from backend.app.services.cart import CheckoutSession
from backend.app.services.pos import add_to_cart, complete_sale
from backend.tests.conftest import auth, make_product


def _stock(db: Session, product: Product) -> int:
    unit = db.query(ProductUnit).filter(ProductUnit.product_id == product.id).one()
    db.refresh(unit)
    return unit.stock


def _fill_cart(client: TestClient, token: str, product: Product, qty: int) -> dict:
    resp = None
    for _ in range(qty):
        resp = client.post("/api/v1/pos/cart/items", json={"product_id": str(product.id)}, headers=auth(token))
        assert resp.status_code == 200
    return resp.json()


# ── Cart ─────────────────────────────────────────────────────────────────


def test_empty_cart_cannot_checkout(client: TestClient, kasir_token: str) -> None:
    resp = client.get("/api/v1/pos/cart", headers=auth(kasir_token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["state"] == "EMPTY"
    assert body["lines"] == []
    assert body["can_checkout"] is False


def test_cart_pricing_uses_merchant_rates(
    client: TestClient, kasir_token: str, product_kopi: Product,
) -> None:
    body = _fill_cart(client, kasir_token, product_kopi, 2)

    assert body["state"] == "NON_EMPTY"
    assert len(body["lines"]) == 1
    assert body["lines"][0]["quantity"] == 2
    pricing = body["pricing"]
    assert Decimal(pricing["subtotal"]) == Decimal("36000")
    assert Decimal(pricing["discount_amount"]) == Decimal("1800")
    assert Decimal(pricing["tax_amount"]) == Decimal("3762")
    assert Decimal(pricing["total"]) == Decimal("37962")
    assert body["can_checkout"] is True


def test_adding_beyond_stock_is_capped(
    client: TestClient, kasir_token: str, product_roti: Product,
) -> None:
    _fill_cart(client, kasir_token, product_roti, 2)
    resp = client.post(
        "/api/v1/pos/cart/items", json={"product_id": str(product_roti.id)}, headers=auth(kasir_token),
    )
    assert resp.status_code == 200
    assert resp.json()["stock_capped"] is True
    assert resp.json()["lines"][0]["quantity"] == 2


def test_out_of_stock_product_is_rejected(
    client: TestClient, db: Session, kasir_token: str, product_roti: Product,
) -> None:
    product_roti.units[0].stock = 0
    db.commit()
    resp = client.post(
        "/api/v1/pos/cart/items", json={"product_id": str(product_roti.id)}, headers=auth(kasir_token),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


def test_set_quantity_and_remove(
    client: TestClient, kasir_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 1)
    url = f"/api/v1/pos/cart/items/{product_kopi.id}"

    resp = client.put(url, json={"quantity": "4"}, headers=auth(kasir_token))
    assert resp.json()["lines"][0]["quantity"] == 4

    resp = client.put(url, json={"quantity": 99}, headers=auth(kasir_token))
    assert resp.json()["lines"][0]["quantity"] == 10
    assert resp.json()["stock_capped"] is True

    resp = client.put(url, json={"quantity": "abc"}, headers=auth(kasir_token))
    assert resp.json()["state"] == "EMPTY"


def test_carts_are_per_user(
    client: TestClient, kasir_token: str, admin_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 1)
    resp = client.get("/api/v1/pos/cart", headers=auth(admin_token))
    assert resp.json()["state"] == "EMPTY"


def test_superadmin_has_no_cart(client: TestClient, superadmin_token: str) -> None:
    resp = client.get("/api/v1/pos/cart", headers=auth(superadmin_token))
    assert resp.status_code == 403


# ── Checkout ─────────────────────────────────────────────────────────────


def test_cash_checkout_persists_sale(
    client: TestClient,
    db: Session,
    kasir_token: str,
    kasir_user: User,
    outlet_a: Outlet,
    product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 2)
    client.put(
        "/api/v1/pos/cart/payment",
        json={"payment_method": "cash", "cash_received": "40000"},
        headers=auth(kasir_token),
    )

    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert Decimal(body["total_amount"]) == Decimal("37962")
    assert Decimal(body["change_given"]) == Decimal("2038")
    assert body["outlet_id"] == str(outlet_a.id)
    assert body["kasir_name"] == "Siti"
    assert body["items"][0]["quantity"] == 2

    assert _stock(db, product_kopi) == 8
    assert db.query(SalesTransaction).count() == 1
    assert db.query(AuditLog).filter(AuditLog.action == "SALE_COMPLETED").count() == 1

    cart = client.get("/api/v1/pos/cart", headers=auth(kasir_token)).json()
    assert cart["state"] == "EMPTY"
    assert Decimal(cart["cash_received"]) == Decimal("0")

    fetched = client.get(f"/api/v1/pos/transactions/{body['id']}", headers=auth(kasir_token))
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]


def test_qris_checkout_needs_no_cash(
    client: TestClient, kasir_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 1)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(kasir_token))

    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))

    assert resp.status_code == 201
    assert resp.json()["payment_method"] == "qris"
    assert resp.json()["change_given"] is None


def test_stored_amounts_keep_four_decimals(
    client: TestClient, db: Session, kasir_token: str, merchant,
) -> None:
    product = make_product(db, merchant, name="Permen", price="1.99", stock=5)
    _fill_cart(client, kasir_token, product, 1)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(kasir_token))

    body = client.post("/api/v1/pos/checkout", headers=auth(kasir_token)).json()

    # 1.99 less 5% is 1.8905; 11% tax on that is 0.207955
    assert Decimal(body["discount_amount"]) == Decimal("0.0995")
    assert Decimal(body["tax_amount"]) == Decimal("0.2080")
    assert Decimal(body["total_amount"]) == Decimal("2.0985")


def test_insufficient_cash_is_rejected(
    client: TestClient, db: Session, kasir_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 2)
    client.put(
        "/api/v1/pos/cart/payment",
        json={"payment_method": "cash", "cash_received": "30000"},
        headers=auth(kasir_token),
    )

    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))

    assert resp.status_code == 400
    assert db.query(SalesTransaction).count() == 0
    assert client.get("/api/v1/pos/cart", headers=auth(kasir_token)).json()["state"] == "NON_EMPTY"


def test_empty_cart_checkout_is_rejected(client: TestClient, kasir_token: str) -> None:
    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))
    assert resp.status_code == 400


def test_admin_without_outlet_cannot_checkout(
    client: TestClient, admin_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, admin_token, product_kopi, 1)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(admin_token))

    resp = client.post("/api/v1/pos/checkout", headers=auth(admin_token))

    assert resp.status_code == 400
    assert "outlet" in resp.json()["detail"].lower()


def test_failed_write_keeps_cart_and_stock(
    client: TestClient,
    db: Session,
    kasir_token: str,
    product_kopi: Product,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 2)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(kasir_token))

    def boom() -> None:
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", boom)
    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))
    monkeypatch.undo()

    assert resp.status_code == 503
    assert resp.json()["error"] == "WriteError"

    cart = client.get("/api/v1/pos/cart", headers=auth(kasir_token)).json()
    assert cart["state"] == "NON_EMPTY"
    assert cart["lines"][0]["quantity"] == 2
    assert _stock(db, product_kopi) == 10
    assert db.query(SalesTransaction).count() == 0

    # Retrying once the store is back succeeds with the same cart
    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))
    assert resp.status_code == 201
    assert _stock(db, product_kopi) == 8


def test_stock_changed_since_added_is_rejected(
    client: TestClient, db: Session, kasir_token: str, product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_token, product_kopi, 3)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(kasir_token))
    product_kopi.units[0].stock = 1
    db.commit()

    resp = client.post("/api/v1/pos/checkout", headers=auth(kasir_token))

    assert resp.status_code == 400
    assert "Insufficient stock" in resp.json()["detail"]
    assert _stock(db, product_kopi) == 1


def test_kasir_cannot_read_other_outlet_transaction(
    client: TestClient,
    kasir_token: str,
    kasir_b_token: str,
    product_kopi: Product,
) -> None:
    _fill_cart(client, kasir_b_token, product_kopi, 1)
    client.put("/api/v1/pos/cart/payment", json={"payment_method": "qris"}, headers=auth(kasir_b_token))
    txn_id = client.post("/api/v1/pos/checkout", headers=auth(kasir_b_token)).json()["id"]

    resp = client.get(f"/api/v1/pos/transactions/{txn_id}", headers=auth(kasir_token))
    assert resp.status_code == 400


# ── Concurrent checkout ──────────────────────────────────────────────────


def _qris_checkout(db: Session, session: SessionContext, product: Product, qty: int) -> CheckoutSession:
    checkout = CheckoutSession(outlet_id=session.outlet_id, payment_method=PaymentMethod.QRIS)
    for _ in range(qty):
        assert add_to_cart(db, session, checkout, product.id)
    return checkout


def test_second_checkout_of_same_cart_waits_and_finds_it_empty(
    db: Session, kasir_user: User, outlet_a: Outlet, product_kopi: Product,
) -> None:
    session = SessionContext.from_user(kasir_user, outlet_id=outlet_a.id)
    checkout = _qris_checkout(db, session, product_kopi, 2)
    errors: list[Exception] = []

    def second_request() -> None:
        try:
            complete_sale(db, session, checkout)
        except ValidationError as exc:
            errors.append(exc)

    with checkout.lock:
        worker = threading.Thread(target=second_request)
        worker.start()
        worker.join(0.2)
        # Blocked while the first sale holds the cart
        assert worker.is_alive()
        complete_sale(db, session, checkout)
    worker.join(5)

    assert not worker.is_alive()
    assert len(errors) == 1
    assert "at least one item" in str(errors[0])
    assert db.query(SalesTransaction).count() == 1
    assert _stock(db, product_kopi) == 8


def test_stock_sold_elsewhere_after_validation_is_rejected(
    db: Session, kasir_user: User, outlet_a: Outlet, product_kopi: Product,
) -> None:
    session = SessionContext.from_user(kasir_user, outlet_id=outlet_a.id)
    checkout = _qris_checkout(db, session, product_kopi, 2)

    unit = product_kopi.units[0]
    unit.stock = 1
    db.commit()
    # This session still holds the count it read before the other till's sale
    unit.stock = 10

    with pytest.raises(ValidationError, match="Insufficient stock"):
        complete_sale(db, session, checkout)

    assert db.query(SalesTransaction).count() == 0
    assert _stock(db, product_kopi) == 1
    assert checkout.cart.lines[0].quantity == 2
