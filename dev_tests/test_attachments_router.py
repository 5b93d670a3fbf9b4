"""
Tests for attachments_router.py - multipart decoding for the upload field.

Builds a minimal FastAPI app around the router and overrides the field
dependency with one bound to a temporary project directory.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import attachments_router
from config import UploadFieldSettings
from services.upload_field import UploadField


@pytest.fixture
def spool_dir(tmp_path, monkeypatch):
    directory = tmp_path / "spool"
    directory.mkdir()
    monkeypatch.setattr(attachments_router.config, "TEMP_DIR", str(directory))
    return directory


def _client(field: UploadField) -> TestClient:
    app = FastAPI()
    app.include_router(attachments_router.router)
    app.dependency_overrides[attachments_router.get_upload_field] = lambda: field
    return TestClient(app)


@pytest.fixture
def multi_client(project_dir, spool_dir):
    field = UploadField(UploadFieldSettings(project_dir=str(project_dir), multiple=True))
    return _client(field)


@pytest.fixture
def single_client(project_dir, spool_dir):
    field = UploadField(UploadFieldSettings(project_dir=str(project_dir)))
    return _client(field)


class TestReconcileEndpoint:

    def test_upload_creates_file(self, single_client, storage_root, spool_dir):
        """
        Given: A multipart request with one file under items[0][file]
        When: POST /attachments/reconcile
        Then: The file is stored and its public path is returned
        """
        response = single_client.post(
            "/attachments/reconcile",
            files={"items[0][file]": ("report.pdf", b"%PDF-1.4 body", "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json() == {"value": "/uploads/files/report.pdf", "errors": []}
        assert (storage_root / "report.pdf").read_bytes() == b"%PDF-1.4 body"
        assert list(spool_dir.iterdir()) == []

    def test_delete_flag(self, single_client, storage_root):
        (storage_root / "old.pdf").write_bytes(b"old")
        response = single_client.post(
            "/attachments/reconcile",
            data={"previous": "/uploads/files/old.pdf", "items[0][delete]": "1"},
        )

        assert response.status_code == 200
        assert response.json()["value"] is None
        assert not (storage_root / "old.pdf").exists()

    def test_no_items_keeps_previous(self, single_client, storage_root):
        (storage_root / "old.pdf").write_bytes(b"old")
        response = single_client.post("/attachments/reconcile", data={"previous": "/uploads/files/old.pdf"})
        assert response.json()["value"] == "/uploads/files/old.pdf"

    def test_collection_replace_and_delete(self, multi_client, storage_root):
        (storage_root / "a.pdf").write_bytes(b"a")
        (storage_root / "b.pdf").write_bytes(b"b")

        response = multi_client.post(
            "/attachments/reconcile",
            data={"previous": ["/uploads/files/a.pdf", "/uploads/files/b.pdf"], "items[0][delete]": "1"},
            files={"items[1][file]": ("new.pdf", b"new", "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json()["value"] == ["/uploads/files/new.pdf"]
        assert sorted(path.name for path in storage_root.iterdir()) == ["new.pdf"]

    def test_invalid_previous_is_reported(self, multi_client):
        response = multi_client.post(
            "/attachments/reconcile",
            data={"previous": "/elsewhere/a.pdf"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["value"] == []
        assert body["errors"][0]["error_type"] == "InvalidReferenceError"

    def test_unrelated_form_fields_are_ignored(self, single_client):
        response = single_client.post("/attachments/reconcile", data={"title": "hello", "items[x][file]": "1"})
        assert response.json() == {"value": None, "errors": []}


class TestFieldDependency:

    def test_misconfigured_field_returns_500(self, tmp_path, monkeypatch):
        settings = UploadFieldSettings(project_dir=str(tmp_path), storage_root="missing")
        monkeypatch.setattr(attachments_router, "_upload_field", None)
        monkeypatch.setattr(attachments_router.config, "UPLOADS", settings)

        app = FastAPI()
        app.include_router(attachments_router.router)
        response = TestClient(app).post("/attachments/reconcile", data={})

        assert response.status_code == 500
        assert response.json()["detail"] == "Upload storage is not configured"

    def test_field_is_built_once(self, project_dir, monkeypatch):
        monkeypatch.setattr(attachments_router, "_upload_field", None)
        monkeypatch.setattr(attachments_router.config, "UPLOADS", UploadFieldSettings(project_dir=str(project_dir)))

        first = attachments_router.get_upload_field()
        assert attachments_router.get_upload_field() is first


class TestHealth:

    def test_health(self):
        from main import app

        response = TestClient(app).get("/health")
        assert response.json() == {"status": "ok"}
