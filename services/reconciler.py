"""Reconciliation of previously stored attachments against a new submission."""

from __future__ import annotations

import logging
import posixpath
from typing import List, Optional, Sequence, Set, Tuple

from logging_utils import Outcome, log_item_outcome
from models import (
    AttachmentAction,
    AttachmentState,
    Effect,
    ItemError,
    PendingUpload,
    ReconciliationResult,
    StoredReference,
    SubmittedItem,
)
from services.collision_resolver import CollisionResolver
from services.filename_template import FilenameNamer
from services.storage_effects import StorageEffects
from services.upload_errors import AdditionNotAllowedError, StorageWriteError, UploadBindingError

logger = logging.getLogger(__name__)


class AttachmentReconciler:
    """Decide and execute the storage effects of one submission.

    Items are matched to previous references by position. Each item is handled
    independently: a failure is recorded as an :class:`ItemError` and the
    remaining items are still processed. When a file is replaced, the new file
    is moved into place before the superseded one is deleted; if the move
    fails the previous reference is kept and nothing is deleted.
    """

    def __init__(
        self,
        *,
        storage: StorageEffects,
        namer: FilenameNamer,
        resolver: Optional[CollisionResolver] = None,
        multiple: bool = False,
        allow_add: bool = False,
        allow_delete: bool = True,
    ) -> None:
        self.storage = storage
        self.namer = namer
        self.resolver = resolver or CollisionResolver(storage.exists)
        self.multiple = multiple
        self.allow_add = allow_add
        self.allow_delete = allow_delete

    def reconcile(
        self,
        previous: Sequence[Optional[StoredReference]],
        submitted: Sequence[SubmittedItem],
    ) -> ReconciliationResult:
        result = self.apply(self.plan(previous, submitted))
        if self.multiple and not self.allow_add:
            for index in range(len(previous), len(submitted)):
                if submitted[index].file is not None:
                    self._record_error(
                        result,
                        index,
                        AdditionNotAllowedError(
                            f"Upload '{submitted[index].file.original_filename}' was not stored: "
                            "adding items is not allowed"
                        ),
                    )
            result.errors.sort(key=lambda error: error.index)
        return result

    def plan(
        self,
        previous: Sequence[Optional[StoredReference]],
        submitted: Sequence[SubmittedItem],
    ) -> List[AttachmentState]:
        """Classify every slot without touching storage."""
        if not self.multiple:
            previous = list(previous)[:1]
            submitted = list(submitted)[:1]

        states: List[AttachmentState] = []
        for index in range(max(len(previous), len(submitted))):
            existing = previous[index] if index < len(previous) else None
            item = submitted[index] if index < len(submitted) else SubmittedItem()
            state = self._classify(index, existing, item, appending=index >= len(previous))
            if state is not None:
                states.append(state)
        return states

    def apply(self, states: Sequence[AttachmentState]) -> ReconciliationResult:
        """Execute the effects implied by ``states`` in order."""
        result = ReconciliationResult(states=list(states))
        moved: Set[str] = set()

        for state in states:
            if state.action == AttachmentAction.UNCHANGED:
                result.references.append(state.existing)
                log_item_outcome(logger, state.index, Outcome.KEEP, state.existing.storage_path)

            elif state.action == AttachmentAction.CREATE:
                try:
                    reference, effect = self._store(state, moved)
                except UploadBindingError as exc:
                    self._record_error(result, state.index, exc)
                    continue
                result.effects.append(effect)
                result.references.append(reference)
                log_item_outcome(logger, state.index, Outcome.CREATE, reference.storage_path)

            elif state.action == AttachmentAction.REPLACE:
                try:
                    reference, effect = self._store(state, moved)
                except UploadBindingError as exc:
                    self._record_error(result, state.index, exc)
                    result.references.append(state.existing)
                    continue
                result.effects.append(effect)
                result.references.append(reference)
                try:
                    result.effects.append(self._delete(state))
                except UploadBindingError as exc:
                    logger.warning(
                        "Replaced %s but could not remove the superseded file", state.existing.storage_path
                    )
                    self._record_error(result, state.index, exc)
                    continue
                log_item_outcome(
                    logger,
                    state.index,
                    Outcome.REPLACE,
                    f"{state.existing.storage_path} -> {reference.storage_path}",
                )

            elif state.action == AttachmentAction.DELETE:
                try:
                    result.effects.append(self._delete(state))
                except UploadBindingError as exc:
                    self._record_error(result, state.index, exc)
                    result.references.append(state.existing)
                    continue
                log_item_outcome(logger, state.index, Outcome.DELETE, state.existing.storage_path)

        return result

    def _classify(
        self,
        index: int,
        existing: Optional[StoredReference],
        item: SubmittedItem,
        *,
        appending: bool = False,
    ) -> Optional[AttachmentState]:
        if existing is None:
            if item.file is None:
                return None
            if appending and self.multiple and not self.allow_add:
                logger.debug("Skipping new upload at position %d: adding items is not allowed", index)
                return None
            return AttachmentState(index=index, action=AttachmentAction.CREATE, upload=item.file)

        if item.file is not None:
            return AttachmentState(index=index, action=AttachmentAction.REPLACE, existing=existing, upload=item.file)

        if item.delete:
            if self.allow_delete:
                return AttachmentState(index=index, action=AttachmentAction.DELETE, existing=existing)
            logger.debug("Delete requested at position %d but deleting is disabled", index)

        return AttachmentState(index=index, action=AttachmentAction.UNCHANGED, existing=existing)

    def _store(self, state: AttachmentState, moved: Set[str]) -> Tuple[StoredReference, Effect]:
        upload: PendingUpload = state.upload
        if upload.temporary_path in moved:
            raise StorageWriteError(f"Upload '{upload.original_filename}' has already been persisted")

        filename = self.namer(upload)
        candidate = posixpath.normpath(filename.replace("\\", "/")) if filename else ""
        if candidate in ("", "."):
            raise StorageWriteError(f"Empty target filename for upload '{upload.original_filename}'")
        if candidate.startswith("/") or candidate == ".." or candidate.startswith("../"):
            raise StorageWriteError(
                f"Target filename {filename!r} for upload '{upload.original_filename}' is outside the storage root"
            )

        destination = self.resolver.resolve(candidate)
        self.storage.move(upload, destination)
        moved.add(upload.temporary_path)

        return (
            StoredReference(storage_path=destination),
            Effect(kind="move", index=state.index, upload=upload, destination=destination),
        )

    def _delete(self, state: AttachmentState) -> Effect:
        self.storage.delete(state.existing)
        return Effect(kind="delete", index=state.index, reference=state.existing)

    def _record_error(self, result: ReconciliationResult, index: int, exc: UploadBindingError) -> None:
        result.errors.append(ItemError(index=index, error_type=type(exc).__name__, message=str(exc)))
        log_item_outcome(logger, index, Outcome.FAILED, str(exc))
