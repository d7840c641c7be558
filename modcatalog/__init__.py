# ==============================================================================
# MOD CATALOG - SOURCE PACKAGE
# ==============================================================================
# Catalog of game mods, their release archives and the files inside them.
#
# Subpackages:
#   - core: Database, hashing, ingestion, queries, configuration
#   - extractors: Release-archive readers (zip, tar)
#
# Entry points:
#   - modcatalog/cli.py: Command-line interface ("modcatalog" script)
# ==============================================================================

__version__ = "1.0.0"
__description__ = "Mod release catalog with archive content indexing"

# Convenience imports
from .core import Database, FileHasher, IngestionPipeline, CatalogQueries
from .extractors import ExtractorRegistry, get_extractor

__all__ = [
    '__version__',
    '__description__',

    # Core
    'Database',
    'FileHasher',
    'IngestionPipeline',
    'CatalogQueries',

    # Extractors
    'ExtractorRegistry',
    'get_extractor',
]
