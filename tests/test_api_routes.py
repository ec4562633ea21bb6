"""
tests/test_api_routes.py

HTTP contract of the auth, records, analytics and export routers.

The app under test mounts the routers over a test AppContext instead of
importing app.main, which validates production environment variables.
"""

from __future__ import annotations

import dataclasses
import datetime as dt

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.api.routers import analytics_router, auth_router, export_router, records_router
from app.services.auth_service import AuthService
from app.services.export_service import XLSX_MEDIA_TYPE

ROWS = [
    ["Ana", "La Ceiba", "Tienda", "500g", 10, dt.date(2024, 1, 5)],
    ["Luis", "El Pino", "Pulpería", "1kg", 4, dt.date(2024, 2, 7)],
    ["Eva", "El Pino", "Tienda", "500g", 6, dt.date(2024, 3, 9)],
]


@pytest.fixture()
def client(app_context) -> TestClient:
    application = FastAPI()
    for router in (auth_router, records_router, analytics_router, export_router):
        application.include_router(router)
    application.state.context = app_context
    return TestClient(application)


@pytest.fixture()
def auth_headers(client) -> dict[str, str]:
    response = client.post(
        "/auth/sign-up",
        json={"email": "ana@example.com", "password": "secreto1", "display_name": "Ana"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def uploaded(client, auth_headers, make_workbook) -> dict[str, str]:
    response = client.post(
        "/records/upload",
        files={"file": ("ventas.xlsx", make_workbook(ROWS), XLSX_MEDIA_TYPE)},
        headers=auth_headers,
    )
    assert response.status_code == 200
    return auth_headers


class TestAuthRoutes:
    def test_session_round_trip(self, client, auth_headers) -> None:
        response = client.get("/auth/session", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "ana@example.com"

    def test_duplicate_sign_up_conflicts(self, client, auth_headers) -> None:
        response = client.post("/auth/sign-up", json={"email": "ana@example.com", "password": "secreto1"})
        assert response.status_code == 409

    def test_bad_credentials_unauthorized(self, client, auth_headers) -> None:
        response = client.post("/auth/sign-in", json={"email": "ana@example.com", "password": "incorrecta"})
        assert response.status_code == 401

    def test_sign_out_invalidates_token(self, client, auth_headers) -> None:
        assert client.post("/auth/sign-out", headers=auth_headers).status_code == 204
        assert client.get("/auth/session", headers=auth_headers).status_code == 401

    def test_protected_route_requires_token(self, client) -> None:
        assert client.get("/records").status_code == 401

    def test_store_outage_is_service_unavailable(self, app_context) -> None:
        def broken_factory():
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        application = FastAPI()
        application.include_router(auth_router)
        application.state.context = dataclasses.replace(
            app_context,
            auth=AuthService(session_factory=broken_factory, secret_key="x" * 32),
        )
        client = TestClient(application)

        response = client.post("/auth/sign-in", json={"email": "ana@example.com", "password": "secreto1"})

        assert response.status_code == 503
        assert response.json()["detail"] == "Account store is unavailable."


class TestRecordRoutes:
    def test_upload_summary(self, client, auth_headers, make_workbook) -> None:
        response = client.post(
            "/records/upload",
            files={"file": ("ventas.xlsx", make_workbook(ROWS), XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )
        assert response.json() == {"rows_processed": 3, "source_file": "ventas.xlsx"}

    def test_upload_rejects_non_workbook(self, client, auth_headers) -> None:
        response = client.post(
            "/records/upload",
            files={"file": ("notas.txt", b"hola", "text/plain")},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Only .xlsx or .xls files are allowed."

    def test_upload_rejects_unreadable_workbook(self, client, auth_headers) -> None:
        response = client.post(
            "/records/upload",
            files={"file": ("roto.xlsx", b"not a zip", XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_list_filters_sorts_and_paginates(self, client, uploaded) -> None:
        response = client.get(
            "/records",
            params={"city": "El Pino", "sort_field": "quantity", "sort_direction": "asc", "page_size": 1, "page": 2},
            headers=uploaded,
        )

        body = response.json()
        assert response.status_code == 200
        assert (body["total"], body["total_pages"], body["page"]) == (2, 2, 2)
        assert [item["salesperson_name"] for item in body["items"]] == ["Eva"]

    def test_invalid_sort_field(self, client, uploaded) -> None:
        response = client.get("/records", params={"sort_field": "owner_id"}, headers=uploaded)
        assert response.status_code == 400

    def test_delete_record_and_missing_record(self, client, uploaded) -> None:
        record_id = client.get("/records", headers=uploaded).json()["items"][0]["id"]

        assert client.delete(f"/records/{record_id}", headers=uploaded).json()["deleted"] == 1
        assert client.delete(f"/records/{record_id}", headers=uploaded).status_code == 404

    def test_bulk_delete_uses_filters(self, client, uploaded) -> None:
        response = client.post("/records/bulk-delete", params={"city": "El Pino"}, headers=uploaded)

        assert response.json() == {"deleted": 2, "skipped_without_id": 0}
        assert client.get("/records", headers=uploaded).json()["total"] == 1

    def test_files_and_options(self, client, uploaded) -> None:
        files = client.get("/records/files", headers=uploaded).json()
        options = client.get("/records/options", headers=uploaded).json()

        assert files == [{"source_file": "ventas.xlsx", "record_count": 3, "latest_date": "2024-03-09"}]
        assert options["cities"] == ["El Pino", "La Ceiba"]

    def test_records_are_private_to_owner(self, client, uploaded) -> None:
        other = client.post("/auth/sign-up", json={"email": "luis@example.com", "password": "secreto1"}).json()
        headers = {"Authorization": f"Bearer {other['access_token']}"}

        assert client.get("/records", headers=headers).json()["total"] == 0


class TestAnalyticsRoutes:
    def test_summary(self, client, uploaded) -> None:
        body = client.get("/analytics/summary", headers=uploaded).json()

        assert body["kpis"]["record_count"] == 3
        assert body["kpis"]["total_quantity"] == 20
        assert body["monthly"][0] == {"month": "2024-01", "value": 10}

    def test_heatmap(self, client, uploaded) -> None:
        buckets = {item["name"]: item for item in client.get("/analytics/heatmap", headers=uploaded).json()}

        assert buckets["El Pino"]["count"] == 2
        assert buckets["El Pino"]["intensity"] == 1.0
        assert buckets["El Porvenir"]["intensity"] == 0.0


class TestExportRoutes:
    def test_csv_download(self, client, uploaded) -> None:
        response = client.get("/export/records.csv", params={"city": "La Ceiba"}, headers=uploaded)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=\"frijolitos-datos-" in response.headers["content-disposition"]
        assert response.text.split("\n")[1].startswith("Ana,La Ceiba,")

    def test_workbook_and_template_downloads(self, client, uploaded) -> None:
        workbook = client.get("/export/records.xlsx", headers=uploaded)
        template = client.get("/export/template.xlsx", headers=uploaded)

        assert workbook.headers["content-type"] == XLSX_MEDIA_TYPE
        assert workbook.content[:2] == b"PK"
        assert 'filename="plantilla-frijolitos.xlsx"' in template.headers["content-disposition"]

    def test_report_downloads(self, client, uploaded) -> None:
        assert client.get("/export/report.xlsx", headers=uploaded).status_code == 200
        pdf = client.get("/export/report.pdf", headers=uploaded)
        assert pdf.status_code == 200
        assert pdf.content.startswith(b"%PDF")

    def test_report_without_records(self, client, auth_headers) -> None:
        response = client.get("/export/report.pdf", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No hay datos para generar reporte."
