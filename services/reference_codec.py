"""Mapping between internal storage paths and externally visible references."""

from __future__ import annotations

import posixpath
from urllib.parse import quote, unquote

from models import StoredReference
from services.upload_errors import InvalidReferenceError


class ReferenceCodec:
    """Translate stored references to and from ``<external_prefix>/<storage_path>``.

    The prefix may be a path (``/uploads/files``) or an absolute URL
    (``https://cdn.example.com/files``). No I/O is performed.
    """

    def __init__(self, external_prefix: str) -> None:
        self.external_prefix = external_prefix.rstrip("/")

    def to_external(self, reference: StoredReference) -> str:
        path = _normalize(reference.storage_path, reference.storage_path)
        return f"{self.external_prefix}/{quote(path, safe='/')}"

    def from_external(self, value: str) -> StoredReference:
        if not value:
            raise InvalidReferenceError("Empty reference value")

        head = f"{self.external_prefix}/"
        if not value.startswith(head):
            raise InvalidReferenceError(f"Reference {value!r} is outside {head!r}")

        return StoredReference(storage_path=_normalize(unquote(value[len(head):]), value))


def _normalize(raw_path: str, value: str) -> str:
    """Normalize a storage path, rejecting anything that is not a file under the root."""
    if not raw_path or raw_path.startswith("/") or "\\" in raw_path or "\x00" in raw_path:
        raise InvalidReferenceError(f"Reference {value!r} does not name a stored file")

    normalized = posixpath.normpath(raw_path)
    if normalized in (".", "..") or normalized.startswith("../"):
        raise InvalidReferenceError(f"Reference {value!r} escapes the storage root")
    return normalized
