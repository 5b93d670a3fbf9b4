"""
Tests for tools/attachments_cli.py - storage maintenance commands.
"""

from unittest.mock import patch

import pytest

import json_utils
from config import UploadFieldSettings
from services.filename_template import FilenameTemplate
from services.upload_errors import ContentHashError
from tools import attachments_cli


@pytest.fixture(autouse=True)
def field_settings(project_dir, monkeypatch):
    settings = UploadFieldSettings(project_dir=str(project_dir))
    monkeypatch.setattr(attachments_cli.config, "UPLOADS", settings)
    return settings


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4 cli")
    return path


class TestRender:

    def test_render_with_template(self, local_file, capsys):
        assert attachments_cli.main(["render", str(local_file), "--template", "[slug]-copy.[extension]"]) == 0
        assert capsys.readouterr().out.strip() == "report-copy.pdf"

    def test_render_missing_file_is_usage_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            attachments_cli.main(["render", str(tmp_path / "nope.pdf")])
        assert exc_info.value.code == 2


class TestReferences:

    def test_resolve_reports_free_path(self, storage_root, capsys):
        (storage_root / "a.txt").write_text("a")
        attachments_cli.main(["resolve", "a.txt"])
        assert capsys.readouterr().out.strip() == "a_1.txt"

    def test_to_external(self, capsys):
        attachments_cli.main(["to-external", "2024/a.pdf"])
        assert capsys.readouterr().out.strip() == "/uploads/files/2024/a.pdf"

    def test_from_external_with_prefix_override(self, capsys):
        attachments_cli.main(["from-external", "https://cdn.example.com/x/a.pdf", "--external-prefix", "https://cdn.example.com/x"])
        assert capsys.readouterr().out.strip() == "a.pdf"

    def test_from_external_rejects_traversal(self):
        with pytest.raises(SystemExit):
            attachments_cli.main(["from-external", "/uploads/files/../secret"])

    def test_bad_storage_root_is_usage_error(self, tmp_path):
        with pytest.raises(SystemExit):
            attachments_cli.main(["to-external", "a.pdf", "--storage-root", str(tmp_path / "missing")])


class TestStore:

    def test_dry_run_leaves_file_in_place(self, local_file, storage_root, capsys):
        assert attachments_cli.main(["store", str(local_file)]) == 0

        out = capsys.readouterr().out
        assert "Dry-run" in out
        assert local_file.exists()
        assert list(storage_root.iterdir()) == []

    def test_commit_moves_file(self, local_file, storage_root, capsys):
        assert attachments_cli.main(["store", str(local_file), "--commit"]) == 0

        payload = json_utils.loads(capsys.readouterr().out)
        assert payload == {"value": "/uploads/files/report.pdf", "errors": []}
        assert (storage_root / "report.pdf").read_bytes() == b"%PDF-1.4 cli"
        assert not local_file.exists()

    def test_commit_replaces_previous(self, local_file, storage_root, capsys):
        (storage_root / "old.pdf").write_bytes(b"old")
        attachments_cli.main(["store", str(local_file), "--commit", "--previous", "/uploads/files/old.pdf"])

        assert json_utils.loads(capsys.readouterr().out)["value"] == "/uploads/files/report.pdf"
        assert not (storage_root / "old.pdf").exists()

    def test_invalid_previous_exits_nonzero(self, local_file, capsys):
        code = attachments_cli.main(["store", str(local_file), "--commit", "--previous", "/elsewhere/old.pdf"])

        payload = json_utils.loads(capsys.readouterr().out)
        assert code == 1
        assert payload["errors"][0]["error_type"] == "InvalidReferenceError"

    def test_dry_run_hash_failure_is_usage_error(self, local_file):
        """
        Given: A template needing the content hash and an unreadable upload
        When: store runs in dry-run mode
        Then: The failure is reported through the parser, not as a traceback
        """
        with patch.object(FilenameTemplate, "content_hash", side_effect=ContentHashError("unreadable")):
            with pytest.raises(SystemExit) as exc_info:
                attachments_cli.main(["store", str(local_file), "--template", "[contenthash].[extension]"])
        assert exc_info.value.code == 2
        assert local_file.exists()

    def test_to_external_rejects_traversal(self):
        with pytest.raises(SystemExit):
            attachments_cli.main(["to-external", "../secret.txt"])
