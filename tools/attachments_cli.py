"""Utility CLI for inspecting and maintaining upload field storage."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import json_utils as json  # noqa: E402
from config import UploadFieldSettings, config  # noqa: E402
from models import PendingUpload, StoredReference  # noqa: E402
from services.filename_template import FilenameTemplate  # noqa: E402
from services.upload_errors import ConfigurationError, UploadBindingError  # noqa: E402
from services.upload_field import UploadField  # noqa: E402


class CLIError(Exception):
    """Raised when CLI validation fails."""


def _resolve_field(args: argparse.Namespace) -> UploadField:
    overrides = {}
    if args.storage_root:
        overrides["storage_root"] = args.storage_root
    if args.external_prefix:
        overrides["external_prefix"] = args.external_prefix
    if getattr(args, "template", None):
        overrides["filename_template"] = args.template
    settings: UploadFieldSettings = config.UPLOADS.model_copy(update=overrides)
    try:
        return UploadField(settings)
    except ConfigurationError as exc:
        raise CLIError(str(exc)) from exc


def _pending_from_file(path: str) -> PendingUpload:
    source = Path(path)
    if not source.is_file():
        raise CLIError(f"File not found: {source}")
    return PendingUpload(
        temporary_path=str(source),
        original_filename=source.name,
        declared_size=source.stat().st_size,
    )


def _command_render(args: argparse.Namespace) -> int:
    template = args.template or config.UPLOADS.filename_template
    try:
        print(FilenameTemplate(template).render(_pending_from_file(args.file)))
    except UploadBindingError as exc:
        raise CLIError(str(exc)) from exc
    return 0


def _command_resolve(args: argparse.Namespace) -> int:
    field = _resolve_field(args)
    try:
        print(field.reconciler.resolver.resolve(args.path))
    except UploadBindingError as exc:
        raise CLIError(str(exc)) from exc
    return 0


def _command_to_external(args: argparse.Namespace) -> int:
    field = _resolve_field(args)
    try:
        print(field.codec.to_external(StoredReference(storage_path=args.path)))
    except UploadBindingError as exc:
        raise CLIError(str(exc)) from exc
    return 0


def _command_from_external(args: argparse.Namespace) -> int:
    field = _resolve_field(args)
    try:
        reference = field.codec.from_external(args.value)
    except UploadBindingError as exc:
        raise CLIError(str(exc)) from exc
    print(reference.storage_path)
    return 0


def _command_store(args: argparse.Namespace) -> int:
    field = _resolve_field(args)
    pending = _pending_from_file(args.file)
    if not args.commit:
        try:
            target = field.template.render(pending)
        except UploadBindingError as exc:
            raise CLIError(str(exc)) from exc
        print(f"Dry-run: would store {pending.original_filename} as {target}")
        print("Re-run with --commit to move the file into storage.")
        return 0

    previous = args.previous if field.multiple else (args.previous[0] if args.previous else None)
    item = {"file": pending, "delete": False}
    raw = [item] if field.multiple else item
    submission = field.submit(previous or None, raw)
    print(json.dumps({"value": submission.value, "errors": submission.errors}, indent=2))
    return 0 if submission.ok else 1


def _add_field_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--storage-root", help="Override the configured storage root")
    parser.add_argument("--external-prefix", help="Override the configured external prefix")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintenance tools for upload field storage")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render the stored filename for a local file")
    render_parser.add_argument("file", help="File standing in for the upload")
    render_parser.add_argument("--template", help="Template to render (defaults to the configured one)")
    render_parser.set_defaults(func=_command_render)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a collision-free storage path")
    resolve_parser.add_argument("path", help="Candidate path relative to the storage root")
    _add_field_options(resolve_parser)
    resolve_parser.set_defaults(func=_command_resolve)

    to_external_parser = subparsers.add_parser("to-external", help="Map a storage path to its external reference")
    to_external_parser.add_argument("path", help="Path relative to the storage root")
    _add_field_options(to_external_parser)
    to_external_parser.set_defaults(func=_command_to_external)

    from_external_parser = subparsers.add_parser("from-external", help="Map an external reference to a storage path")
    from_external_parser.add_argument("value", help="External path or URL")
    _add_field_options(from_external_parser)
    from_external_parser.set_defaults(func=_command_from_external)

    store_parser = subparsers.add_parser("store", help="Move a local file into storage through the field")
    store_parser.add_argument("file", help="File to move into storage")
    store_parser.add_argument("--previous", action="append", default=[], help="Previously persisted reference(s)")
    store_parser.add_argument("--template", help="Override the configured filename template")
    store_parser.add_argument("--commit", action="store_true", help="Move the file (defaults to dry-run)")
    _add_field_options(store_parser)
    store_parser.set_defaults(func=_command_store)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except CLIError as exc:
        parser.error(str(exc))
        return 2


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    raise SystemExit(main())
