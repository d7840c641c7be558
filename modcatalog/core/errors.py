# ==============================================================================
# CATALOG ERRORS
# ==============================================================================
# Exception hierarchy raised by the catalog store and the ingestion pipeline.
#
# Taxonomy:
#   - NotFoundError:         lookup of a nonexistent mod / modfile
#   - DuplicatePathError:    archive lists the same path twice
#   - ConflictError:         lost a concurrency race after bounded retries
#   - ExtractionFailedError: archive could not be read or parsed
#   - StorageFailedError:    database I/O or transaction failure
#   - NotEmptyError:         non-cascading delete of a mod that has files
#   - ValidationError:       bad metadata (empty slug, empty summary, ...)
#   - IngestionCancelled:    caller abandoned an ingestion before commit
#
# "Already ingested" is NOT an error. It is reported through the status
# field of ModFileInsert / IngestResult.
# ==============================================================================

from typing import Optional


class CatalogError(Exception):
    """Base class for every error raised by modcatalog."""


class NotFoundError(CatalogError):
    """A mod or modfile with the requested identity does not exist."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key!r}")


class DuplicatePathError(CatalogError):
    """
    An archive contains two entries with the same path.

    Raised before anything is written to the catalog.
    """

    def __init__(self, path: str, filename: Optional[str] = None):
        self.path = path
        self.filename = filename
        where = f" in {filename}" if filename else ""
        super().__init__(f"duplicate archive path{where}: {path}")


class ConflictError(CatalogError):
    """A write transaction kept losing a concurrency race."""

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(f"{message} (gave up after {attempts} attempts)")


class ExtractionFailedError(CatalogError):
    """The release archive could not be read; carries the extractor's cause."""

    def __init__(self, filename: str, cause: Optional[BaseException] = None,
                 reason: Optional[str] = None):
        self.filename = filename
        self.cause = cause
        detail = reason or (str(cause) if cause else "unknown error")
        super().__init__(f"could not extract {filename}: {detail}")


class StorageFailedError(CatalogError):
    """Database failure. The transaction was rolled back."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class NotEmptyError(CatalogError):
    """A mod still owns release files and cascade was not requested."""

    def __init__(self, mod_id: int, file_count: int):
        self.mod_id = mod_id
        self.file_count = file_count
        super().__init__(
            f"mod {mod_id} still has {file_count} release file(s); "
            f"pass cascade=True to delete them"
        )


class ValidationError(CatalogError, ValueError):
    """Metadata supplied by the caller is invalid."""


class IngestionCancelled(CatalogError):
    """The caller cancelled an ingestion before it was committed."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"ingestion of {filename} was cancelled")
