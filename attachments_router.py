"""FastAPI router decoding multipart submissions for the configured upload field."""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from config import config
from models import ItemError, PendingUpload
from services.upload_errors import ConfigurationError
from services.upload_field import FieldValue, UploadField

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB per chunk when spooling uploads

_ITEM_FIELD_RE = re.compile(r"^items\[(\d+)\]\[(file|delete)\]$")

router = APIRouter(prefix="/attachments", tags=["attachments"])

_upload_field: Optional[UploadField] = None


def get_upload_field() -> UploadField:
    """Resolve or initialize the shared UploadField instance."""
    global _upload_field
    if _upload_field is None:
        try:
            _upload_field = UploadField(config.UPLOADS)
        except ConfigurationError as exc:
            logger.error("Upload field is misconfigured: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Upload storage is not configured",
            ) from exc
    return _upload_field


class ReconcileResponse(BaseModel):
    """Value to persist for the field and any per-item failures."""

    value: FieldValue = None
    errors: List[ItemError] = Field(default_factory=list)


async def _spool_upload(upload: UploadFile, temp_dir: str) -> PendingUpload:
    suffix = Path(upload.filename or "").suffix
    written = 0
    with tempfile.NamedTemporaryFile(dir=temp_dir, prefix="upload-", suffix=suffix, delete=False) as fh:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            fh.write(chunk)
            written += len(chunk)
        temporary_path = fh.name
    await upload.close()
    return PendingUpload(
        temporary_path=temporary_path,
        original_filename=upload.filename or "upload",
        declared_size=upload.size if upload.size is not None else written,
        content_type=upload.content_type,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_submission(
    request: Request,
    field: UploadField = Depends(get_upload_field),
) -> ReconcileResponse:
    """Apply a multipart submission (``previous``, ``items[N][file]``, ``items[N][delete]``)."""
    form = await request.form()
    previous = [value for value in form.getlist("previous") if isinstance(value, str)]

    items: Dict[int, Dict[str, Any]] = {}
    spooled: List[PendingUpload] = []
    try:
        for key, value in form.multi_items():
            match = _ITEM_FIELD_RE.match(key)
            if not match:
                continue
            index, part = int(match.group(1)), match.group(2)
            slot = items.setdefault(index, {})
            if part == "delete":
                slot["delete"] = value
            elif isinstance(value, UploadFile) and value.filename:
                pending = await _spool_upload(value, config.TEMP_DIR)
                spooled.append(pending)
                slot["file"] = pending

        raw = [items.get(index) for index in range(max(items) + 1)] if items else []
        try:
            submission = await run_in_threadpool(field.submit, previous or None, raw)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    finally:
        for pending in spooled:
            Path(pending.temporary_path).unlink(missing_ok=True)

    return ReconcileResponse(value=submission.value, errors=submission.errors)
