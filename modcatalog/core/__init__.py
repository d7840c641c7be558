# ==============================================================================
# CORE MODULE INIT
# ==============================================================================
# Core engine modules for the mod catalog.
#
# This package contains the fundamental building blocks:
#   - Database: SQLite catalog store with SQLAlchemy ORM
#   - Hasher: Content digests (MD5/SHA256)
#   - IngestionPipeline: hash -> extract -> single-transaction catalog write
#   - CatalogQueries: read-only lookups
#   - Config / Paths: configuration and data locations
#
# Usage:
#   from modcatalog.core import Database, IngestionPipeline, CatalogQueries
#   from modcatalog.core.config import get_config
# ==============================================================================

from .errors import (
    CatalogError, NotFoundError, DuplicatePathError, ConflictError,
    ExtractionFailedError, StorageFailedError, NotEmptyError, ValidationError,
    IngestionCancelled,
)
from .database import (
    Database, Mod, ModFile, PackFile, PackEntry, ModFileInsert,
    CREATED, ALREADY_EXISTS,
)
from .hasher import FileHasher
from .ingest import (
    IngestionPipeline, IngestResult, IngestJob, IngestOutcome, BatchSummary,
    split_pack_path, make_slug, collect_archives,
)
from .queries import CatalogQueries
from .config import Config, get_config
from .paths import Paths
from .logs import configure_logging

__all__ = [
    # Errors
    'CatalogError',
    'NotFoundError',
    'DuplicatePathError',
    'ConflictError',
    'ExtractionFailedError',
    'StorageFailedError',
    'NotEmptyError',
    'ValidationError',
    'IngestionCancelled',

    # Catalog store
    'Database',
    'Mod',
    'ModFile',
    'PackFile',
    'PackEntry',
    'ModFileInsert',
    'CREATED',
    'ALREADY_EXISTS',

    # Hashing
    'FileHasher',

    # Ingestion
    'IngestionPipeline',
    'IngestResult',
    'IngestJob',
    'IngestOutcome',
    'BatchSummary',
    'split_pack_path',
    'make_slug',
    'collect_archives',

    # Queries
    'CatalogQueries',

    # Configuration
    'Config',
    'get_config',
    'Paths',
    'configure_logging',
]
