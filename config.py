"""
Configuration for the Upload Binding Engine
============================================

Central configuration for upload fields. Values come from the environment
(optionally a .env file). Field options are validated once, at setup; a bad
storage root or an invalid option combination raises ConfigurationError
before any submission is processed.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from services.upload_errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

TRUTHY_ENV_VALUES = {"1", "true", "yes", "on"}


class UploadFieldSettings(BaseModel):
    """Options for one upload field bound to managed storage."""

    storage_root: str = Field(
        default="public/uploads/files",
        description="Directory receiving stored uploads; relative values resolve against project_dir",
    )
    project_dir: str = Field(
        default_factory=os.getcwd,
        description="Project directory used for relative roots and external prefix derivation",
    )
    public_dir: str = Field(
        default="public",
        description="Web root (relative to project_dir) used to derive external_prefix when unset",
    )
    filename_template: str = Field(
        default="[name].[extension]",
        description="Template for stored filenames ([name], [extension], [contenthash], [uuid], ...)",
    )
    external_prefix: Optional[str] = Field(
        default=None,
        description="Path or URL prefix under which stored files are externally addressable",
    )
    allow_add: Optional[bool] = Field(
        default=None,
        description="Whether new items may be appended; defaults to the value of 'multiple'",
    )
    allow_delete: bool = Field(
        default=True,
        description="Whether a submitted delete flag is honored",
    )
    multiple: bool = Field(
        default=False,
        description="Bind a collection of files instead of a single file",
    )


def _resolve_root(settings: UploadFieldSettings) -> Path:
    value = settings.storage_root.replace("\\", "/")
    root = Path(value)
    if not root.is_absolute():
        root = Path(settings.project_dir) / root
    return root.resolve()


def derive_external_prefix(storage_root: Path, project_dir: str, public_dir: str) -> str:
    """Derive the public path of ``storage_root`` relative to the project's web root."""
    web_root = (Path(project_dir) / public_dir).resolve()
    try:
        relative = storage_root.relative_to(web_root)
    except ValueError as exc:
        raise ConfigurationError(
            f'Storage root "{storage_root}" is not inside the public directory "{web_root}"; '
            "set external_prefix explicitly"
        ) from exc
    relative_posix = relative.as_posix()
    return "/" if relative_posix == "." else f"/{relative_posix}"


def validate_field_settings(settings: UploadFieldSettings) -> UploadFieldSettings:
    """Return a normalized copy of ``settings`` or raise ConfigurationError."""
    allow_add = settings.multiple if settings.allow_add is None else settings.allow_add
    if allow_add and not settings.multiple:
        raise ConfigurationError(
            'Setting "allow_add" to true when "multiple" is false is not supported.'
        )

    root = _resolve_root(settings)
    if not root.is_dir() or not os.access(root, os.W_OK):
        raise ConfigurationError(
            f'Invalid upload directory "{root}": it does not exist or is not writable.'
        )

    external_prefix = settings.external_prefix
    if external_prefix is None:
        external_prefix = derive_external_prefix(root, settings.project_dir, settings.public_dir)

    if not settings.filename_template:
        raise ConfigurationError("filename_template must not be empty")

    return settings.model_copy(
        update={
            "storage_root": str(root),
            "allow_add": allow_add,
            "external_prefix": external_prefix,
        }
    )


def _env_bool(name: str, default: Optional[bool]) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in TRUTHY_ENV_VALUES


def _settings_from_env() -> UploadFieldSettings:
    values = {
        "storage_root": os.getenv("UPLOAD_STORAGE_ROOT"),
        "project_dir": os.getenv("UPLOAD_PROJECT_DIR"),
        "public_dir": os.getenv("UPLOAD_PUBLIC_DIR"),
        "filename_template": os.getenv("UPLOAD_FILENAME_TEMPLATE"),
        "external_prefix": os.getenv("UPLOAD_EXTERNAL_PREFIX"),
        "allow_add": _env_bool("UPLOAD_ALLOW_ADD", None),
        "allow_delete": _env_bool("UPLOAD_ALLOW_DELETE", None),
        "multiple": _env_bool("UPLOAD_MULTIPLE", None),
    }
    return UploadFieldSettings(**{key: value for key, value in values.items() if value is not None})


class Config(BaseModel):
    """Process-wide configuration"""

    UPLOADS: UploadFieldSettings = Field(default_factory=_settings_from_env, description="Upload field settings")
    TEMP_DIR: str = Field(default_factory=lambda: os.getenv("UPLOAD_TEMP_DIR") or tempfile.gettempdir())
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    LOG_COLOR: bool = Field(default_factory=lambda: _env_bool("LOG_COLOR", True))
    APP_HOST: str = Field(default_factory=lambda: os.getenv("APP_HOST", "127.0.0.1"))
    APP_PORT: int = Field(default_factory=lambda: int(os.getenv("APP_PORT", "8000")))
    APP_RELOAD: bool = Field(default_factory=lambda: _env_bool("APP_RELOAD", False))


config = Config()
