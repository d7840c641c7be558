# ==============================================================================
# BASE EXTRACTOR MODULE
# ==============================================================================
# Abstract base class that every release-archive extractor implements, plus
# an ExtractorRegistry for picking the right extractor for a blob of bytes.
#
# Extractors are stateless: they take the raw archive bytes and return the
# archive entries. They never touch the catalog.
#
# To add support for a new archive format:
#   1. Create a new extractor class that inherits from BaseExtractor
#   2. Implement all abstract methods
#   3. Register the extractor with ExtractorRegistry
#
# Example:
#   class SevenZipExtractor(BaseExtractor):
#       extractor_id = "7z"
#       format_name = "7-Zip archive"
#       supported_extensions = ['.7z']
#       ...
#
#   ExtractorRegistry.register(SevenZipExtractor)
# ==============================================================================

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


# ==============================================================================
# ARCHIVE ENTRY DATA CLASS
# ==============================================================================
@dataclass
class ArchiveEntry:
    """
    A file inside a release archive.

    Attributes:
        path (str):  Relative path within the archive, '/' separated
        size (int):  Uncompressed size in bytes
    """
    path: str
    size: int = 0


def normalize_entry_path(path: str, strip_prefix: Optional[str] = None) -> str:
    """
    Normalize an archive member name to a '/' separated relative path.

    Backslashes become slashes, leading "./" and "/" are dropped, and an
    optional mount prefix (e.g. "../../../") is removed.

    Example:
        >>> normalize_entry_path("../../../FSD/Content/a.uasset", "../../../")
        'FSD/Content/a.uasset'
    """
    path = path.replace('\\', '/')
    if strip_prefix:
        prefix = strip_prefix.replace('\\', '/')
        if path.startswith(prefix):
            path = path[len(prefix):]
    while path.startswith('./'):
        path = path[2:]
    return path.lstrip('/')


# ==============================================================================
# BASE EXTRACTOR ABSTRACT CLASS
# ==============================================================================
class BaseExtractor(ABC):
    """
    Abstract base class for release-archive extractors.

    Subclasses set the three class attributes and implement detect() and
    _iter_members(). Everything else has a default implementation.

    Attributes:
        strip_prefix (str): Optional mount-point prefix removed from paths
    """

    # Unique identifier (e.g., "zip", "tar")
    extractor_id: str = ""

    # Human-readable format name
    format_name: str = ""

    # File extensions including the dot (e.g., ['.zip'])
    supported_extensions: List[str] = []

    def __init__(self, strip_prefix: Optional[str] = None):
        self.strip_prefix = strip_prefix

    # ==========================================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # ==========================================================================

    @abstractmethod
    def detect(self, data: bytes, filename: Optional[str] = None) -> bool:
        """
        Check whether this extractor can read the given archive.

        Implementations should look at the signature of the data first;
        the filename is only a hint.
        """

    @abstractmethod
    def _iter_members(self, data: bytes) -> Iterator[ArchiveEntry]:
        """
        Yield every regular file of the archive with its raw member name.

        Directory entries must be skipped. Format errors are raised as-is;
        the ingestion pipeline reports them as extraction failures.
        """

    # ==========================================================================
    # COMMON METHODS
    # ==========================================================================

    def list_entries(self, data: bytes) -> List[ArchiveEntry]:
        """
        List the files of the archive in archive order, without reading
        their contents. Paths are normalized; empty ones are dropped.
        """
        entries = []
        for entry in self._iter_members(data):
            entry.path = normalize_entry_path(entry.path, self.strip_prefix)
            if entry.path:
                entries.append(entry)
        return entries

    def matches_extension(self, filename: Optional[str]) -> bool:
        if not filename:
            return False
        ext = os.path.splitext(filename)[1].lower()
        return ext in self.supported_extensions


# ==============================================================================
# EXTRACTOR REGISTRY
# ==============================================================================
class ExtractorRegistry:
    """
    Registry of available extractors.

    Usage:
        # Register an extractor
        ExtractorRegistry.register(ZipExtractor)

        # Find extractor for an archive
        extractor = ExtractorRegistry.get_extractor_for_bytes(data, "mod.zip")
    """

    _extractors: Dict[str, type] = {}

    @classmethod
    def register(cls, extractor_class: type):
        """
        Register an extractor class.

        Raises:
            ValueError: If the class has no extractor_id
        """
        if not extractor_class.extractor_id:
            raise ValueError(f"{extractor_class.__name__} has no extractor_id")
        cls._extractors[extractor_class.extractor_id] = extractor_class
        logger.debug("Registered extractor: %s (%s)",
                     extractor_class.__name__, extractor_class.extractor_id)

    @classmethod
    def get_extractor_for_bytes(cls, data: bytes, filename: Optional[str] = None,
                                strip_prefix: Optional[str] = None) -> Optional[BaseExtractor]:
        """
        Find an extractor that can read the archive.

        Extractors whose extensions match the filename are asked first, then
        the rest. Detection is by content, so a misnamed archive still works.

        Returns:
            An extractor instance, or None if no extractor recognizes the data
        """
        candidates = [extractor_class(strip_prefix=strip_prefix)
                      for extractor_class in cls._extractors.values()]
        candidates.sort(key=lambda extractor: not extractor.matches_extension(filename))

        for extractor in candidates:
            if extractor.detect(data, filename):
                return extractor
        return None

    @classmethod
    def list_supported_extensions(cls) -> List[str]:
        """All file extensions supported by registered extractors, sorted."""
        extensions = set()
        for extractor_class in cls._extractors.values():
            extensions.update(extractor_class.supported_extensions)
        return sorted(extensions)
