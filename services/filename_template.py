"""Filename templating for uploads placed into managed storage."""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import re
import secrets
import unicodedata
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from models import PendingUpload
from services.upload_errors import ContentHashError

logger = logging.getLogger(__name__)

FilenameNamer = Callable[[PendingUpload], str]
Clock = Callable[[], datetime]

DEFAULT_TEMPLATE = "[name].[extension]"
FALLBACK_EXTENSION = "bin"

_PLACEHOLDER_RE = re.compile(r"\[([a-z]+)\]")


class FilenameTemplate:
    """Render target filenames from templates such as ``[name]-[timestamp].[extension]``.

    Placeholders are substituted in a single pass, so text produced by one
    placeholder is never interpreted again. Unknown tokens are left as-is.
    """

    CHUNK_SIZE = 1024 * 1024
    RANDOM_BYTES = 20
    SNIFF_BYTES = 512

    def __init__(self, template: str = DEFAULT_TEMPLATE, *, clock: Optional[Clock] = None) -> None:
        self.template = template
        self._clock = clock or datetime.now
        self._resolvers: Dict[str, Callable[[PendingUpload, datetime], str]] = {
            "name": lambda upload, now: self._stem(upload),
            "slug": lambda upload, now: self._slug(upload),
            "extension": lambda upload, now: self.guess_extension(upload),
            "contenthash": lambda upload, now: self.content_hash(upload),
            "randomhash": lambda upload, now: secrets.token_hex(self.RANDOM_BYTES),
            "uuid": lambda upload, now: str(uuid.uuid4()),
            "timestamp": lambda upload, now: str(int(now.timestamp())),
            "year": lambda upload, now: now.strftime("%Y"),
            "month": lambda upload, now: now.strftime("%m"),
            "day": lambda upload, now: now.strftime("%d"),
        }

    def __call__(self, upload: PendingUpload) -> str:
        return self.render(upload)

    def render(self, upload: PendingUpload, template: Optional[str] = None) -> str:
        """Return the filename produced by ``template`` (or the bound template) for ``upload``."""
        source = self.template if template is None else template
        now = self._clock()
        cache: Dict[str, str] = {}

        def _substitute(match: re.Match) -> str:
            token = match.group(1)
            resolver = self._resolvers.get(token)
            if resolver is None:
                return match.group(0)
            if token not in cache:
                cache[token] = resolver(upload, now)
            return cache[token]

        rendered = _PLACEHOLDER_RE.sub(_substitute, source)
        logger.debug("Rendered filename %r from template %r", rendered, source)
        return rendered

    def content_hash(self, upload: PendingUpload) -> str:
        """SHA-1 hex digest of the upload bytes."""
        hasher = hashlib.sha1()
        try:
            with Path(upload.temporary_path).open("rb") as fh:
                while True:
                    chunk = fh.read(self.CHUNK_SIZE)
                    if not chunk:
                        break
                    hasher.update(chunk)
        except OSError as exc:
            raise ContentHashError(
                f"Unable to read upload '{upload.original_filename}' to compute its content hash"
            ) from exc
        return hasher.hexdigest()

    def guess_extension(self, upload: PendingUpload) -> str:
        """Best-guess extension without the leading dot."""
        declared = (upload.content_type or "").split(";", 1)[0].strip().lower()
        if declared and declared != "application/octet-stream":
            guessed = mimetypes.guess_extension(declared)
            if guessed:
                return guessed.lstrip(".")

        suffix = Path(self._basename(upload)).suffix
        if suffix and len(suffix) > 1:
            return suffix[1:].lower()

        sniffed = self._sniff_mime(upload)
        if sniffed:
            guessed = mimetypes.guess_extension(sniffed)
            if guessed:
                return guessed.lstrip(".")
        return FALLBACK_EXTENSION

    def _basename(self, upload: PendingUpload) -> str:
        # Browsers may send a full client path with either separator
        return Path(upload.original_filename.replace("\\", "/")).name

    def _stem(self, upload: PendingUpload) -> str:
        return Path(self._basename(upload)).stem

    def _slug(self, upload: PendingUpload) -> str:
        normalized = unicodedata.normalize("NFKD", self._stem(upload))
        ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
        return re.sub(r"[^a-z0-9_]", "", ascii_only.lower())

    def _sniff_mime(self, upload: PendingUpload) -> Optional[str]:
        try:
            with Path(upload.temporary_path).open("rb") as fh:
                sample = fh.read(self.SNIFF_BYTES)
        except OSError:
            return None
        if not sample:
            return None
        header = sample[:8]
        if header.startswith(b"%PDF-"):
            return "application/pdf"
        if header.startswith((b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")):
            return "application/zip"
        if header.startswith(b"\x1f\x8b\x08"):
            return "application/gzip"
        if header.startswith(b"\x89PNG"):
            return "image/png"
        if header.startswith(b"\xff\xd8"):
            return "image/jpeg"
        if b"\x00" not in sample:
            try:
                sample.decode("utf-8")
            except UnicodeDecodeError:
                return None
            return "text/plain"
        return None


def render(template: str, upload: PendingUpload) -> str:
    """Render ``template`` for ``upload`` using the wall clock."""
    return FilenameTemplate(template).render(upload)
