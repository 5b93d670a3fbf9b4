"""Binding between an upload form field and managed storage."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from config import UploadFieldSettings, validate_field_settings
from models import ItemError, PendingUpload, ReconciliationResult, StoredReference, SubmittedItem
from services.collision_resolver import CollisionResolver
from services.filename_template import Clock, FilenameNamer, FilenameTemplate
from services.reconciler import AttachmentReconciler
from services.reference_codec import ReferenceCodec
from services.storage_effects import LocalStorageEffects, StorageEffects
from services.upload_errors import InvalidReferenceError

logger = logging.getLogger(__name__)

FieldValue = Union[None, str, List[str]]

_TRUTHY_FLAGS = {"1", "on", "true", "yes"}


class FieldSubmission(BaseModel):
    """Value to persist for the field plus per-item errors."""

    value: FieldValue = None
    errors: List[ItemError] = Field(default_factory=list)
    result: ReconciliationResult = Field(default_factory=ReconciliationResult)

    @property
    def ok(self) -> bool:
        return not self.errors


class UploadField:
    """Wire settings, naming, storage and reconciliation for one field.

    Settings are validated here, so a misconfigured field fails when it is
    built rather than on its first submission.
    """

    def __init__(
        self,
        settings: UploadFieldSettings,
        *,
        storage: Optional[StorageEffects] = None,
        namer: Optional[FilenameNamer] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = validate_field_settings(settings)
        self.template = FilenameTemplate(self.settings.filename_template, clock=clock)
        self.storage = storage or LocalStorageEffects(self.settings.storage_root)
        self.codec = ReferenceCodec(self.settings.external_prefix)
        self.reconciler = AttachmentReconciler(
            storage=self.storage,
            namer=namer or self.template.render,
            resolver=CollisionResolver(self.storage.exists),
            multiple=self.settings.multiple,
            allow_add=bool(self.settings.allow_add),
            allow_delete=self.settings.allow_delete,
        )

    @property
    def multiple(self) -> bool:
        return self.settings.multiple

    def submit(self, previous_value: FieldValue, raw: Any) -> FieldSubmission:
        """Reconcile ``raw`` form data against the persisted ``previous_value``."""
        previous, errors = self.previous_references(previous_value)
        submitted = self.normalize_submission(raw)
        result = self.reconciler.reconcile(previous, submitted)

        all_errors = sorted(errors + result.errors, key=lambda err: err.index)
        if all_errors:
            logger.warning("Upload submission finished with %d error(s)", len(all_errors))

        return FieldSubmission(value=self.to_value(result.references), errors=all_errors, result=result)

    def previous_references(self, value: FieldValue) -> Tuple[List[Optional[StoredReference]], List[ItemError]]:
        """Decode a persisted field value; undecodable slots become empty."""
        if value is None:
            return [], []
        values = [value] if isinstance(value, str) else list(value)

        references: List[Optional[StoredReference]] = []
        errors: List[ItemError] = []
        for index, item in enumerate(values):
            if not item:
                references.append(None)
                continue
            try:
                references.append(self.codec.from_external(item))
            except InvalidReferenceError as exc:
                errors.append(ItemError(index=index, error_type=type(exc).__name__, message=str(exc)))
                references.append(None)
        return references, errors

    def to_value(self, references: Iterable[StoredReference]) -> FieldValue:
        external = [self.codec.to_external(reference) for reference in references]
        if self.multiple:
            return external
        return external[0] if external else None

    def normalize_submission(self, raw: Any) -> List[SubmittedItem]:
        """Turn raw form data into positional submitted items.

        Single mode accepts one ``{"file": ..., "delete": ...}`` mapping.
        Multiple mode accepts a list of such mappings or a mapping keyed by
        position (``{"0": {...}, "2": {...}}``); gaps become empty items.
        """
        if raw is None:
            return []

        if not self.multiple:
            if isinstance(raw, (list, tuple)):
                raw = raw[0] if raw else None
            return [] if raw is None else [self._normalize_item(raw)]

        if isinstance(raw, Mapping):
            positions: Dict[int, Any] = {}
            for key, item in raw.items():
                try:
                    positions[int(key)] = item
                except (TypeError, ValueError):
                    logger.warning("Ignoring submitted item with non-positional key %r", key)
            if not positions:
                return []
            return [
                self._normalize_item(positions.get(index))
                for index in range(max(positions) + 1)
            ]

        return [self._normalize_item(item) for item in raw]

    def _normalize_item(self, raw: Any) -> SubmittedItem:
        if raw is None:
            return SubmittedItem()
        if isinstance(raw, SubmittedItem):
            return raw
        if isinstance(raw, PendingUpload):
            return SubmittedItem(file=raw)

        file_value = raw.get("file")
        if file_value in ("", None):
            upload = None
        elif isinstance(file_value, PendingUpload):
            upload = file_value
        else:
            try:
                upload = PendingUpload.model_validate(file_value)
            except ValidationError as exc:
                raise ValueError(f"Invalid upload payload: {exc}") from exc

        return SubmittedItem(file=upload, delete=_is_truthy(raw.get("delete")))


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY_FLAGS
