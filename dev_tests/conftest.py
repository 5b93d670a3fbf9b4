"""Shared pytest fixtures for Upload Binding Engine tests."""

import os
import sys
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import PendingUpload, StoredReference  # noqa: E402
from services.upload_errors import StorageDeleteError, StorageWriteError  # noqa: E402


# ============================================================================
# Storage Fixtures
# ============================================================================

class InMemoryStorage:
    """StorageEffects fake recording every call in order."""

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        *,
        fail_move_for: Optional[Set[str]] = None,
        fail_delete_for: Optional[Set[str]] = None,
    ) -> None:
        self.files: Dict[str, str] = dict(files or {})
        self.fail_move_for = set(fail_move_for or ())
        self.fail_delete_for = set(fail_delete_for or ())
        self.calls: List[Tuple[str, str]] = []

    def exists(self, path: str) -> bool:
        return path in self.files

    def move(self, upload: PendingUpload, destination_path: str) -> None:
        self.calls.append(("move", destination_path))
        if upload.original_filename in self.fail_move_for:
            raise StorageWriteError(f"Simulated write failure for {destination_path}")
        self.files[destination_path] = upload.original_filename

    def delete(self, reference: StoredReference) -> None:
        self.calls.append(("delete", reference.storage_path))
        if reference.storage_path in self.fail_delete_for:
            raise StorageDeleteError(f"Simulated delete failure for {reference.storage_path}")
        self.files.pop(reference.storage_path, None)


@pytest.fixture
def memory_storage():
    """Empty in-memory storage backend."""
    return InMemoryStorage()


@pytest.fixture
def storage_factory():
    """Build in-memory backends with pre-existing files or injected faults."""
    return InMemoryStorage


@pytest.fixture
def project_dir(tmp_path):
    """Project layout with a writable public/uploads/files root."""
    root = tmp_path / "project"
    (root / "public" / "uploads" / "files").mkdir(parents=True)
    return root


@pytest.fixture
def storage_root(project_dir):
    return project_dir / "public" / "uploads" / "files"


# ============================================================================
# Upload Fixtures
# ============================================================================

@pytest.fixture
def make_upload(tmp_path):
    """Factory writing a spooled upload to disk and returning its descriptor."""
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    counter = {"value": 0}

    def _make(
        filename: str = "report.pdf",
        content: bytes = b"%PDF-1.4 test document",
        content_type: Optional[str] = None,
    ) -> PendingUpload:
        counter["value"] += 1
        spooled = incoming / f"upload-{counter['value']}.tmp"
        spooled.write_bytes(content)
        return PendingUpload(
            temporary_path=str(spooled),
            original_filename=filename,
            declared_size=len(content),
            content_type=content_type,
        )

    return _make


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 7, 9, 30, 15)


@pytest.fixture
def fixed_clock(fixed_now):
    """Clock returning a constant instant."""
    return lambda: fixed_now
