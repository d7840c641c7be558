# ==============================================================================
# ZIP EXTRACTOR MODULE
# ==============================================================================
# Reads .zip release archives, the format mod hosts distribute releases in.
# Uses the standard library zipfile module; nothing is written to disk.
#
# Usage:
#   extractor = ZipExtractor()
#   if extractor.detect(data):
#       for entry in extractor.list_entries(data):
#           print(entry.path, entry.size)
# ==============================================================================

import io
import zipfile
from typing import Iterator, Optional

from .base_extractor import BaseExtractor, ArchiveEntry, ExtractorRegistry


class ZipExtractor(BaseExtractor):
    """Extractor for ZIP archives."""

    extractor_id = "zip"
    format_name = "ZIP archive"
    supported_extensions = ['.zip']

    def detect(self, data: bytes, filename: Optional[str] = None) -> bool:
        # Local file header, or end-of-central-directory for an empty archive
        if not data.startswith((b'PK\x03\x04', b'PK\x05\x06')):
            return False
        return zipfile.is_zipfile(io.BytesIO(data))

    def _iter_members(self, data: bytes) -> Iterator[ArchiveEntry]:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                yield ArchiveEntry(path=info.filename, size=info.file_size)


ExtractorRegistry.register(ZipExtractor)
