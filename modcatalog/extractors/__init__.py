# ==============================================================================
# EXTRACTORS MODULE INIT
# ==============================================================================
# Release-archive extractors for the mod catalog.
#
# This package contains:
#   - BaseExtractor: Abstract base class defining the interface
#   - ExtractorRegistry: Registry for managing available extractors
#   - ZipExtractor: .zip release archives
#   - TarExtractor: .tar / .tar.gz / .tar.bz2 / .tar.xz release archives
#
# Adding a new extractor:
#   1. Create a new file (e.g., sevenzip_extractor.py)
#   2. Subclass BaseExtractor and implement all abstract methods
#   3. Call ExtractorRegistry.register(MyExtractor) at module level
#   4. Import the module here
#
# Usage:
#   from modcatalog.extractors import get_extractor
#   extractor = get_extractor(data, "cool-mod.zip")
#   if extractor:
#       entries = extractor.list_entries(data)
# ==============================================================================

# Import base classes first (required by other extractors)
from .base_extractor import (
    BaseExtractor, ExtractorRegistry, ArchiveEntry, normalize_entry_path,
)

# Import specific extractors (each one registers itself)
from .zip_extractor import ZipExtractor
from .tar_extractor import TarExtractor

__all__ = [
    'BaseExtractor',
    'ExtractorRegistry',
    'ArchiveEntry',
    'normalize_entry_path',
    'ZipExtractor',
    'TarExtractor',
    'get_extractor',
]


def get_extractor(data: bytes, filename: str = None, strip_prefix: str = None):
    """
    Get an extractor that can read the given archive bytes.

    This is a convenience function that wraps ExtractorRegistry.

    Returns:
        An extractor instance, or None if the format is not recognized
    """
    return ExtractorRegistry.get_extractor_for_bytes(data, filename, strip_prefix)
