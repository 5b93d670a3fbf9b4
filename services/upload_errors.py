"""Exception hierarchy for upload binding and storage reconciliation."""


class UploadBindingError(Exception):
    """Base exception for upload binding errors."""


class ConfigurationError(UploadBindingError):
    """Raised at field setup when options are invalid or storage is unusable."""


class ContentHashError(UploadBindingError):
    """Raised when the upload bytes cannot be read to compute a content hash."""


class StorageWriteError(UploadBindingError):
    """Raised when an upload cannot be moved into managed storage."""


class StorageDeleteError(UploadBindingError):
    """Raised when an existing stored file cannot be removed."""


class InvalidReferenceError(UploadBindingError):
    """Raised when an external reference does not map inside the storage root."""


class AdditionNotAllowedError(UploadBindingError):
    """Raised for an upload appended to a collection that does not accept new items."""
