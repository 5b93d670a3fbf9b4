"""Storage primitives invoked by the attachment reconciler."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Protocol, Union

from models import PendingUpload, StoredReference
from services.upload_errors import StorageDeleteError, StorageWriteError

logger = logging.getLogger(__name__)


class StorageEffects(Protocol):
    """Move/delete capability; paths are relative to the backend's storage root."""

    def exists(self, path: str) -> bool: ...

    def move(self, upload: PendingUpload, destination_path: str) -> None: ...

    def delete(self, reference: StoredReference) -> None: ...


class LocalStorageEffects:
    """Local filesystem backend rooted at a single directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).resolve()

    def absolute_path(self, relative_path: str) -> Path:
        """Resolve ``relative_path`` under the root, rejecting anything that escapes it."""
        abs_path = (self.root / relative_path).resolve()
        try:
            abs_path.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Path traversal detected: {relative_path}")
        if abs_path == self.root:
            raise ValueError(f"Path does not name a file under the storage root: {relative_path!r}")
        return abs_path

    def exists(self, path: str) -> bool:
        try:
            return self.absolute_path(path).exists()
        except ValueError as exc:
            raise StorageWriteError(str(exc)) from exc

    def move(self, upload: PendingUpload, destination_path: str) -> None:
        try:
            destination = self.absolute_path(destination_path)
        except ValueError as exc:
            raise StorageWriteError(str(exc)) from exc

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(upload.temporary_path, str(destination))
        except OSError as exc:
            raise StorageWriteError(
                f"Failed to move upload '{upload.original_filename}' to {destination_path}: {exc}"
            ) from exc

        logger.info("Stored upload %s as %s", upload.original_filename, destination_path)

    def delete(self, reference: StoredReference) -> None:
        try:
            target = self.absolute_path(reference.storage_path)
        except ValueError as exc:
            raise StorageDeleteError(str(exc)) from exc

        try:
            target.unlink()
        except FileNotFoundError:
            logger.debug("Stored file %s already absent", reference.storage_path)
            return
        except OSError as exc:
            raise StorageDeleteError(f"Failed to delete {reference.storage_path}: {exc}") from exc

        logger.info("Deleted stored file %s", reference.storage_path)
