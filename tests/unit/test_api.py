"""Unit tests for the analyzer API.

Tests cover:
- Health, readiness and metrics endpoints
- Batch upload of receipts and rule files
- Record review and bulk category edits
- Vendor rule management
- Spreadsheet export
"""

import io
import json
from pathlib import Path

import pytest
from conftest import ScriptedClassifier
from fastapi import status
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from taxease.api.main import create_app
from taxease.rules.persistence import JsonFileSlot
from taxease.shared.config import Settings

RECEIPTS = {
    "uber.png": {
        "vendor_name": "Uber Trip",
        "invoice_date": "2024-03-04",
        "total_amount": 18.0,
        "currency": "USD",
        "description": "Ride to client",
        "tax_category": "Other Expenses",
        "confidence_score": 90,
    },
    "zoom.png": {
        "vendor_name": "Zoom Video",
        "invoice_date": "2024-03-05",
        "total_amount": 14.99,
        "currency": "USD",
        "description": "Monthly subscription",
        "tax_category": "Office Expense",
        "confidence_score": 96,
    },
}


@pytest.fixture
def rules_path(tmp_path: Path) -> Path:
    """Location of the persisted rule set for this test."""
    return tmp_path / "rules.json"


@pytest.fixture
def client(rules_path: Path) -> TestClient:
    """Create test client around a fresh session with a scripted classifier."""
    settings = Settings(_env_file=None, rules_path=str(rules_path), seed_default_rules=False)
    app = create_app(settings=settings, classifier=ScriptedClassifier(RECEIPTS))
    return TestClient(app)


def image(name: str) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, b"\x89PNG fake", "image/png"))


def rule_upload(name: str, entries: object) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, json.dumps(entries).encode(), "application/json"))


def upload(client: TestClient, files: list) -> dict:
    response = client.post("/api/v1/batches", params={"wait": "true"}, files=files)
    assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()


class TestHealth:
    """Test health and monitoring endpoints."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "taxease-analyzer"

    def test_readiness_check(self, client: TestClient) -> None:
        response = client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["ready"] is True
        assert data["classifier"] == "scripted"
        assert data["classifier_available"] is True

    def test_metrics_endpoint(self, client: TestClient) -> None:
        client.get("/health")
        response = client.get("/metrics")

        assert response.status_code == status.HTTP_200_OK
        assert "http_requests_total" in response.text


class TestBatchUpload:
    """Test batch ingestion through the API."""

    def test_receipts_classified_in_order(self, client: TestClient) -> None:
        report = upload(client, [image("zoom.png"), image("uber.png"), image("cat.png")])

        assert [r["filename"] for r in report["records"]] == ["zoom.png", "uber.png", "cat.png"]
        assert [r["status"] for r in report["records"]] == ["completed", "completed", "error"]
        assert report["records"][2]["error_message"] is not None

        listed = client.get("/api/v1/invoices").json()
        assert [r["filename"] for r in listed] == ["zoom.png", "uber.png", "cat.png"]

    def test_rule_file_applies_to_same_batch(self, client: TestClient) -> None:
        report = upload(
            client,
            [
                image("uber.png"),
                rule_upload("rules.json", [{"vendorNamePattern": "uber", "taxCategory": "Travel"}]),
            ],
        )

        assert report["rules_added"] == 1
        assert report["records"][0]["tax_category"] == "Travel"
        assert len(client.get("/api/v1/invoices").json()) == 1

    def test_corrupt_rule_file_reported(self, client: TestClient) -> None:
        report = upload(
            client,
            [("files", ("broken.json", b"{oops", "application/json")), image("zoom.png")],
        )

        assert report["rule_file_errors"][0]["filename"] == "broken.json"
        assert report["records"][0]["status"] == "completed"

    def test_empty_receipt_fails_individually(self, client: TestClient) -> None:
        report = upload(client, [("files", ("blank.png", b"", "image/png"))])

        assert report["records"][0]["status"] == "error"
        assert report["records"][0]["error_message"] == "Empty file"

    def test_oversize_upload_rejected(self, rules_path: Path) -> None:
        settings = Settings(
            _env_file=None,
            rules_path=str(rules_path),
            seed_default_rules=False,
            max_upload_bytes=4,
        )
        client = TestClient(create_app(settings=settings, classifier=ScriptedClassifier()))

        response = client.post("/api/v1/batches", files=[image("big.png")])

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "too large" in response.json()["detail"]
        assert client.get("/api/v1/invoices").json() == []

    def test_stats(self, client: TestClient) -> None:
        upload(client, [image("uber.png"), image("zoom.png"), image("cat.png")])

        stats = client.get("/api/v1/stats").json()

        assert stats["total_files"] == 3
        assert stats["processed"] == 3
        assert stats["successful"] == 2
        assert stats["failed"] == 1
        assert stats["total_value"] == pytest.approx(32.99)
        assert stats["is_processing"] is False
        assert stats["queued"] == 0


class TestInvoiceEdits:
    """Test record corrections."""

    def test_update_invoice(self, client: TestClient) -> None:
        record = upload(client, [image("zoom.png")])["records"][0]

        response = client.patch(
            f"/api/v1/invoices/{record['id']}",
            json={"description": "Video calls", "tax_category": "Utilities"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["description"] == "Video calls"
        assert data["tax_category"] == "Utilities"
        assert data["status"] == "completed"

    def test_update_unknown_invoice(self, client: TestClient) -> None:
        response = client.patch("/api/v1/invoices/missing", json={"description": "x"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_with_unknown_category(self, client: TestClient) -> None:
        record = upload(client, [image("zoom.png")])["records"][0]

        response = client.patch(
            f"/api/v1/invoices/{record['id']}", json={"tax_category": "Groceries"}
        )

        assert response.status_code == 422

    def test_bulk_category(self, client: TestClient) -> None:
        records = upload(client, [image("uber.png"), image("zoom.png")])["records"]
        ids = [r["id"] for r in records] + ["missing"]

        response = client.post(
            "/api/v1/invoices/bulk-category", json={"ids": ids, "tax_category": "Supplies"}
        )

        assert response.json() == {"updated": 2}
        listed = client.get("/api/v1/invoices").json()
        assert {r["tax_category"] for r in listed} == {"Supplies"}


class TestRules:
    """Test vendor rule management."""

    def test_add_list_and_delete(self, client: TestClient, rules_path: Path) -> None:
        response = client.post(
            "/api/v1/rules", json={"vendorNamePattern": "Zoom", "taxCategory": "Office Expense"}
        )
        assert response.status_code == status.HTTP_201_CREATED
        rule = response.json()
        assert rule["vendorNamePattern"] == "Zoom"

        assert [r["id"] for r in client.get("/api/v1/rules").json()] == [rule["id"]]
        assert json.loads(JsonFileSlot(rules_path).read() or "[]")[0]["id"] == rule["id"]

        assert client.delete(f"/api/v1/rules/{rule['id']}").status_code == 204
        assert client.get("/api/v1/rules").json() == []
        assert client.delete(f"/api/v1/rules/{rule['id']}").status_code == 404

    def test_add_duplicate_rule(self, client: TestClient) -> None:
        body = {"vendor_name_pattern": "Adobe", "tax_category": "Office Expense"}
        assert client.post("/api/v1/rules", json=body).status_code == 201

        response = client.post(
            "/api/v1/rules", json={"vendorNamePattern": "ADOBE", "taxCategory": "Advertising"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_add_invalid_rule(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/rules", json={"vendorNamePattern": "Adobe", "taxCategory": "Software"}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_new_rule_recategorizes_existing_records(self, client: TestClient) -> None:
        upload(client, [image("uber.png")])

        client.post("/api/v1/rules", json={"vendorNamePattern": "uber", "taxCategory": "Travel"})

        assert client.get("/api/v1/invoices").json()[0]["tax_category"] == "Travel"

    def test_import_and_export(self, client: TestClient) -> None:
        entries = [
            {"vendorNamePattern": "Qantas", "taxCategory": "Travel"},
            {"vendorNamePattern": "qantas", "taxCategory": "Deductible Meals"},
            {"vendorNamePattern": "", "taxCategory": "Travel"},
        ]

        response = client.post("/api/v1/rules/import", json=entries)
        assert response.json() == {"rules_added": 1, "notice": None}

        again = client.post("/api/v1/rules/import", json=entries).json()
        assert again["rules_added"] == 0
        assert again["notice"] is not None

        exported = client.get("/api/v1/rules/export")
        assert "attachment" in exported.headers["content-disposition"]
        assert [r["vendorNamePattern"] for r in exported.json()] == ["Qantas"]


class TestExport:
    """Test spreadsheet download."""

    def test_export_without_completed_records(self, client: TestClient) -> None:
        upload(client, [image("cat.png")])

        response = client.get("/api/v1/export")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "No valid data to export."

    def test_export_workbook(self, client: TestClient) -> None:
        upload(client, [image("uber.png"), image("zoom.png")])

        response = client.get("/api/v1/export")

        assert response.status_code == status.HTTP_200_OK
        assert "Tax_Return_Summary.xlsx" in response.headers["content-disposition"]
        workbook = load_workbook(io.BytesIO(response.content))
        assert workbook.sheetnames == ["Tax Summary", "Itemized Invoices"]
