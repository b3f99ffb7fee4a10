"""Sales report and export endpoints."""
from __future__ import annotations

import uuid
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.models.audit import AuditLog
from backend.app.models.outlet import Outlet
from backend.app.models.pos import PaymentMethod
from backend.app.services.access import SessionContext
from backend.app.services.file_service import FileStorageService
from backend.app.services.reports import ReportFilter, build_sales_report_document
from backend.app.workers.tasks import exports
from backend.tests.conftest import auth, make_sale, utc


@pytest.fixture()
def sales(db, merchant, other_merchant, outlet_a, outlet_b, kasir_user, kasir_b_user):
    """Five sales across two outlets plus one sale of another merchant."""
    foreign_outlet = Outlet(name="Foreign", address="", merchant_id=other_merchant.id)
    db.add(foreign_outlet)
    db.commit()
    return [
        make_sale(db, merchant=merchant, outlet=outlet_a, kasir=kasir_user, amount="15000",
                  timestamp=utc(2026, 1, 1, 3, 0)),
        make_sale(db, merchant=merchant, outlet=outlet_b, kasir=kasir_b_user, amount="22000",
                  timestamp=utc(2026, 1, 2, 5, 0), method=PaymentMethod.QRIS),
        make_sale(db, merchant=merchant, outlet=outlet_a, kasir=kasir_user, amount="8000",
                  timestamp=utc(2026, 1, 3, 16, 0), method=PaymentMethod.QRIS),
        make_sale(db, merchant=merchant, outlet=outlet_b, kasir=kasir_b_user, amount="40000",
                  timestamp=utc(2026, 1, 5, 4, 0)),
        # 17:30 UTC on Jan 3 is already Jan 4 in Jakarta
        make_sale(db, merchant=merchant, outlet=outlet_a, kasir=kasir_user, amount="5000",
                  timestamp=utc(2026, 1, 3, 17, 30)),
        make_sale(db, merchant=other_merchant, outlet=foreign_outlet, kasir=kasir_user,
                  amount="99000", timestamp=utc(2026, 1, 2, 3, 0)),
    ]


class TestSalesReport:
    def test_admin_sees_whole_merchant(self, client, admin_token, sales):
        resp = client.get("/api/v1/reports/sales", headers=auth(admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 5
        assert Decimal(body["total_amount_sum"]) == Decimal("90000")
        # Newest first
        assert body["transactions"][0]["timestamp"].startswith("2026-01-05")

    def test_date_range_in_local_days(self, client, admin_token, sales):
        resp = client.get(
            "/api/v1/reports/sales",
            params={"date_from": "2026-01-01", "date_to": "2026-01-03"},
            headers=auth(admin_token),
        )
        body = resp.json()
        assert body["count"] == 3
        assert Decimal(body["total_amount_sum"]) == Decimal("45000")

    def test_filters_by_outlet_kasir_and_method(
        self, client, admin_token, sales, outlet_b, kasir_user,
    ):
        by_outlet = client.get(
            "/api/v1/reports/sales", params={"outlet_id": str(outlet_b.id)}, headers=auth(admin_token),
        ).json()
        assert by_outlet["count"] == 2

        by_kasir = client.get(
            "/api/v1/reports/sales", params={"kasir_id": str(kasir_user.id)}, headers=auth(admin_token),
        ).json()
        assert by_kasir["count"] == 3
        assert {t["kasir_name"] for t in by_kasir["transactions"]} == {"Siti"}

        by_method = client.get(
            "/api/v1/reports/sales", params={"payment_method": "qris"}, headers=auth(admin_token),
        ).json()
        assert by_method["count"] == 2

    def test_kasir_only_sees_own_outlet(self, client, kasir_token, sales, outlet_a, outlet_b):
        own = client.get("/api/v1/reports/sales", headers=auth(kasir_token)).json()
        assert own["count"] == 3
        assert {t["outlet_id"] for t in own["transactions"]} == {str(outlet_a.id)}

        # Asking for another outlet still reports on the kasir's own outlet
        other = client.get(
            "/api/v1/reports/sales",
            params={"outlet_id": str(outlet_b.id), "kasir_id": str(uuid.uuid4())},
            headers=auth(kasir_token),
        ).json()
        assert other["count"] == 3
        assert other["outlet_id"] == str(outlet_a.id)
        assert other["kasir_id"] == "all"

    def test_kasir_export_label_names_own_outlet(
        self, db: Session, kasir_user, outlet_a, outlet_b, sales,
    ):
        session = SessionContext.from_user(kasir_user, outlet_id=outlet_a.id)
        doc = build_sales_report_document(
            db, session, ReportFilter(outlet_id=str(outlet_b.id)),
        )
        assert "Outlet: Outlet A" in doc.filter_description
        assert {row.outlet for row in doc.rows} == {"Outlet A"}

    def test_superadmin_sees_all_merchants(self, client, superadmin_token, sales):
        body = client.get("/api/v1/reports/sales", headers=auth(superadmin_token)).json()
        assert body["count"] == 6

    def test_inverted_date_range_is_rejected(self, client, admin_token):
        resp = client.get(
            "/api/v1/reports/sales",
            params={"date_from": "2026-02-01", "date_to": "2026-01-01"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 400

    def test_unknown_payment_method_is_rejected(self, client, admin_token):
        resp = client.get(
            "/api/v1/reports/sales", params={"payment_method": "card"}, headers=auth(admin_token),
        )
        assert resp.status_code == 422

    def test_deleted_outlet_falls_back_to_stored_name(
        self, client, db: Session, admin_token, sales, outlet_b,
    ):
        db.delete(outlet_b)
        db.commit()
        body = client.get(
            "/api/v1/reports/sales", params={"payment_method": "qris"}, headers=auth(admin_token),
        ).json()
        names = {t["outlet_name"] for t in body["transactions"]}
        assert names == {"Outlet A", "Outlet B"}


class TestSalesExport:
    def test_pdf_export(self, client, db: Session, admin_token, sales):
        resp = client.get(
            "/api/v1/reports/sales/export/pdf",
            params={"date_from": "2026-01-01", "date_to": "2026-01-03"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content[:5] == b"%PDF-"
        assert 'filename="sales-report_2026-01-01_2026-01-03.pdf"' in resp.headers["content-disposition"]
        assert db.query(AuditLog).filter(AuditLog.action == "REPORT_EXPORTED").count() == 1

    def test_excel_export(self, client, admin_token, sales):
        resp = client.get(
            "/api/v1/reports/sales/export/excel",
            params={"lang": "id"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        assert "spreadsheetml" in resp.headers["content-type"]
        # XLSX files are ZIP archives starting with PK
        assert resp.content[:2] == b"PK"

    def test_empty_result_is_not_exported(self, client, admin_token, sales):
        resp = client.get(
            "/api/v1/reports/sales/export/pdf",
            params={"date_from": "2025-06-01", "date_to": "2025-06-30"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No data to export"

    def test_empty_notice_follows_accept_language(self, client, admin_token):
        resp = client.get(
            "/api/v1/reports/sales/export/excel",
            headers={**auth(admin_token), "Accept-Language": "id-ID,id;q=0.9"},
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Tidak ada data untuk diekspor"

    def test_kasir_export_limited_to_outlet(self, client, kasir_b_token, sales):
        resp = client.get("/api/v1/reports/sales/export/pdf", headers=auth(kasir_b_token))
        assert resp.status_code == 200


class TestDashboard:
    def test_dashboard_shape(self, client, admin_token):
        resp = client.get("/api/v1/reports/dashboard", headers=auth(admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["transaction_count"] == 0
        assert Decimal(body["revenue"]) == Decimal("0")
        assert body["recent_sales"] == []


class TestExportJobs:
    @pytest.fixture()
    def storage(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FileStorageService:
        monkeypatch.setattr(settings, "FILE_STORAGE_PATH", str(tmp_path))
        return FileStorageService()

    @staticmethod
    def _task_state(monkeypatch: pytest.MonkeyPatch, state: str, result: dict | None = None) -> None:
        monkeypatch.setattr(
            exports, "AsyncResult", lambda task_id, app=None: SimpleNamespace(state=state, result=result),
        )

    def test_queued_export_reports_progress(self, client, admin_token, monkeypatch):
        self._task_state(monkeypatch, "STARTED")
        body = client.get("/api/v1/reports/sales/export/async/t-1", headers=auth(admin_token)).json()
        assert body == {"task_id": "t-1", "status": "running", "url": None, "detail": None}

    def test_finished_export_links_to_download(
        self, client, admin_token, admin_user, merchant, storage, monkeypatch,
    ):
        relative = f"{exports.export_folder(merchant.id, admin_user.id)}/sales-report-1.pdf"
        storage.save(relative, b"%PDF-1.4 report")
        self._task_state(monkeypatch, "SUCCESS", {
            "status": "done", "url": storage.url(relative), "user_id": str(admin_user.id),
        })

        body = client.get("/api/v1/reports/sales/export/async/t-2", headers=auth(admin_token)).json()
        assert body["status"] == "done"

        resp = client.get(body["url"], headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content == b"%PDF-1.4 report"

    def test_crashed_export_is_failed(self, client, admin_token, monkeypatch):
        self._task_state(monkeypatch, "FAILURE")
        body = client.get("/api/v1/reports/sales/export/async/t-3", headers=auth(admin_token)).json()
        assert body["status"] == "failed"

    def test_other_users_export_is_hidden(
        self, client, kasir_token, admin_user, merchant, storage, monkeypatch,
    ):
        relative = f"{exports.export_folder(merchant.id, admin_user.id)}/sales-report-2.pdf"
        storage.save(relative, b"%PDF-1.4 report")
        self._task_state(monkeypatch, "SUCCESS", {
            "status": "done", "url": storage.url(relative), "user_id": str(admin_user.id),
        })

        status_resp = client.get("/api/v1/reports/sales/export/async/t-4", headers=auth(kasir_token))
        assert status_resp.status_code == 404
        file_resp = client.get(storage.url(relative), headers=auth(kasir_token))
        assert file_resp.status_code == 404

    def test_missing_file_is_not_found(self, client, admin_token, admin_user, merchant, storage):
        url = storage.url(f"{exports.export_folder(merchant.id, admin_user.id)}/gone.pdf")
        assert client.get(url, headers=auth(admin_token)).status_code == 404
