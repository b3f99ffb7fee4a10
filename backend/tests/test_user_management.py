"""Superadmin merchant/user management and merchant kasir management."""
from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from backend.app.models.audit import AuditLog
from backend.app.models.outlet import Outlet
from backend.app.models.user import User, UserStatus
from backend.tests.conftest import auth


# ── Superadmin ───────────────────────────────────────────────────────────


def test_superadmin_creates_active_merchant(
    client: TestClient, db: Session, superadmin_token: str,
) -> None:
    resp = client.post(
        "/api/v1/users/merchants",
        json={
            "merchant_name": "Toko Sejahtera",
            "admin_name": "Dewi",
            "email": "dewi@sejahtera.test",
            "password": "rahasia1",
        },
        headers=auth(superadmin_token),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Toko Sejahtera"
    assert body["admin"]["status"] == "ACTIVE"
    assert body["admin"]["role"] == "ADMIN"

    login = client.post(
        "/api/v1/auth/login/access-token",
        data={"username": "dewi@sejahtera.test", "password": "rahasia1"},
    )
    assert login.status_code == 200


def test_superadmin_lists_users(
    client: TestClient, superadmin_token: str, admin_user: User, kasir_user: User,
) -> None:
    resp = client.get("/api/v1/users", headers=auth(superadmin_token))
    assert resp.status_code == 200
    emails = {u["email"] for u in resp.json()}
    assert {"admin@maju.test", "siti@maju.test", "root@kasir.test"} <= emails


def test_only_superadmin_manages_users(client: TestClient, admin_token: str) -> None:
    assert client.get("/api/v1/users", headers=auth(admin_token)).status_code == 403


def test_deactivate_and_reactivate(
    client: TestClient, db: Session, superadmin_token: str, kasir_user: User,
) -> None:
    resp = client.post(f"/api/v1/users/{kasir_user.id}/deactivate", headers=auth(superadmin_token))
    assert resp.json()["status"] == "INACTIVE"

    resp = client.post(f"/api/v1/users/{kasir_user.id}/activate", headers=auth(superadmin_token))
    assert resp.json()["status"] == "ACTIVE"
    assert db.query(AuditLog).filter(AuditLog.action == "USER_STATUS_CHANGED").count() == 2


def test_superadmin_cannot_be_deactivated_or_deleted(
    client: TestClient, superadmin_user: User, superadmin_token: str,
) -> None:
    resp = client.post(
        f"/api/v1/users/{superadmin_user.id}/deactivate", headers=auth(superadmin_token),
    )
    assert resp.status_code == 400
    resp = client.delete(f"/api/v1/users/{superadmin_user.id}", headers=auth(superadmin_token))
    assert resp.status_code == 400


def test_approve_requires_pending_user(
    client: TestClient, superadmin_token: str, admin_user: User,
) -> None:
    resp = client.post(f"/api/v1/users/{admin_user.id}/approve", headers=auth(superadmin_token))
    assert resp.status_code == 400


def test_delete_user(
    client: TestClient, db: Session, superadmin_token: str, kasir_user: User,
) -> None:
    kasir_id = kasir_user.id
    resp = client.delete(f"/api/v1/users/{kasir_id}", headers=auth(superadmin_token))
    assert resp.status_code == 204
    assert db.get(User, kasir_id) is None


def test_unknown_user_is_reported(client: TestClient, superadmin_token: str) -> None:
    resp = client.post(f"/api/v1/users/{uuid.uuid4()}/activate", headers=auth(superadmin_token))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User not found"


# ── Kasir management (merchant admin) ────────────────────────────────────


def test_admin_creates_kasir_with_outlets(
    client: TestClient, admin_token: str, outlet_a: Outlet, outlet_b: Outlet,
) -> None:
    resp = client.post(
        "/api/v1/kasir",
        json={
            "name": "Andi",
            "email": "andi@maju.test",
            "password": "rahasia1",
            "outlet_ids": [str(outlet_a.id), str(outlet_b.id)],
        },
        headers=auth(admin_token),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "ACTIVE"
    assert set(body["outlet_ids"]) == {str(outlet_a.id), str(outlet_b.id)}

    listed = client.get("/api/v1/kasir", headers=auth(admin_token)).json()
    assert [k["email"] for k in listed] == ["andi@maju.test"]


def test_kasir_needs_an_outlet(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/api/v1/kasir",
        json={"name": "Andi", "email": "andi@maju.test", "password": "rahasia1", "outlet_ids": []},
        headers=auth(admin_token),
    )
    assert resp.status_code == 422


def test_kasir_outlets_must_belong_to_merchant(
    client: TestClient, db: Session, admin_token: str, other_merchant,
) -> None:
    foreign = Outlet(name="Foreign", address="", merchant_id=other_merchant.id)
    db.add(foreign)
    db.commit()

    resp = client.post(
        "/api/v1/kasir",
        json={
            "name": "Andi",
            "email": "andi@maju.test",
            "password": "rahasia1",
            "outlet_ids": [str(foreign.id)],
        },
        headers=auth(admin_token),
    )
    assert resp.status_code == 400


def test_update_kasir_reassigns_outlets(
    client: TestClient, admin_token: str, kasir_user: User, outlet_b: Outlet,
) -> None:
    resp = client.put(
        f"/api/v1/kasir/{kasir_user.id}",
        json={"name": "Siti Rahma", "outlet_ids": [str(outlet_b.id)]},
        headers=auth(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Siti Rahma"
    assert resp.json()["outlet_ids"] == [str(outlet_b.id)]


def test_delete_kasir(
    client: TestClient, db: Session, admin_token: str, kasir_user: User,
) -> None:
    kasir_id = kasir_user.id
    resp = client.delete(f"/api/v1/kasir/{kasir_id}", headers=auth(admin_token))
    assert resp.status_code == 204
    assert db.get(User, kasir_id) is None


def test_kasir_cannot_manage_kasirs(client: TestClient, kasir_token: str) -> None:
    assert client.get("/api/v1/kasir", headers=auth(kasir_token)).status_code == 403


def test_inactive_admin_can_be_reactivated(
    client: TestClient, db: Session, superadmin_token: str, admin_user: User,
) -> None:
    admin_user.status = UserStatus.INACTIVE
    db.commit()
    resp = client.post(f"/api/v1/users/{admin_user.id}/activate", headers=auth(superadmin_token))
    assert resp.json()["status"] == "ACTIVE"
