"""Error taxonomy for the file lifecycle.

Every error carries a short user-facing message and the HTTP status the API
layer renders it with. Internal detail (paths, driver messages) goes to the
log, never into `message`.
"""


class FileDropError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FileDropError):
    """Missing or malformed input."""
    status_code = 400
    default_message = "Invalid request"


class UploadAborted(FileDropError):
    """The client stopped sending bytes before the upload finished."""
    status_code = 400
    default_message = "Upload was interrupted"


class FileTooLarge(FileDropError):
    status_code = 413

    def __init__(self, limit_mb: float):
        self.limit_mb = limit_mb
        super().__init__(f"File exceeds the size limit (max {limit_mb:g}MB)")


class QuotaExceeded(FileDropError):
    status_code = 413

    def __init__(self, limit_mb: float):
        self.limit_mb = limit_mb
        super().__init__(f"Not enough storage space (limit {limit_mb:g}MB)")


class NotFound(FileDropError):
    status_code = 404
    default_message = "File not found"


class Expired(FileDropError):
    """Record exists but its expiry date has passed."""
    status_code = 410
    default_message = "File has expired"


class DuplicateCode(FileDropError):
    """Insert hit the unique constraint on the retrieval code.

    Recovered by the upload orchestrator; only reaches the client as
    InternalError once retries run out.
    """
    status_code = 500

    def __init__(self, code: str):
        self.code = code
        super().__init__("Could not allocate a retrieval code")


class StorageFailure(FileDropError):
    status_code = 500
    default_message = "File storage failed"


class StoragePathRejected(StorageFailure):
    """Locator resolves outside the backend's managed root or prefix."""
    status_code = 400
    default_message = "Illegal storage path"


class ConfigurationError(FileDropError):
    status_code = 400
    default_message = "Storage is not configured"


class InternalError(FileDropError):
    status_code = 500
