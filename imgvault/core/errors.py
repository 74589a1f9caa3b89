"""Error types raised across the ingestion pipeline and storage layers."""


class ImgVaultError(Exception):
    """Base class for all imgvault errors."""
    pass


class UnreadableFileError(ImgVaultError):
    """Raised when a source file is missing or cannot be read.

    The only failure the orchestrator recovers from: the file is skipped.
    """

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read {path}: {reason}")


class DecodeError(ImgVaultError):
    """Raised when a buffer is not a decodable image."""
    pass


class UploadError(ImgVaultError):
    """Raised when a blob write faults or completes without an identifier."""
    pass


class IndexWriteError(ImgVaultError):
    """Raised when a metadata record cannot be written to the index."""
    pass


class StoreConnectionError(ImgVaultError):
    """Raised when the blob store or metadata index cannot be reached."""
    pass


class InvalidBlobId(ImgVaultError, ValueError):
    """Raised when a blob identifier string is malformed."""
    pass


class BlobNotFoundError(ImgVaultError):
    """Raised when no blob matches an identifier."""
    pass


class BlobStreamError(ImgVaultError):
    """Raised when reading a stored blob faults."""
    pass
