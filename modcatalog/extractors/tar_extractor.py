# ==============================================================================
# TAR EXTRACTOR MODULE
# ==============================================================================
# Reads tar release archives, plain or compressed (.tar.gz, .tgz, .tar.bz2,
# .tar.xz). Only regular files are reported; links, devices and directories
# are skipped.
# ==============================================================================

import io
import tarfile
from typing import Iterator, Optional

from .base_extractor import BaseExtractor, ArchiveEntry, ExtractorRegistry


class TarExtractor(BaseExtractor):
    """Extractor for tar archives (any compression tarfile understands)."""

    extractor_id = "tar"
    format_name = "Tar archive"
    supported_extensions = ['.tar', '.tgz', '.gz', '.bz2', '.xz']

    def detect(self, data: bytes, filename: Optional[str] = None) -> bool:
        if not data:
            return False
        return tarfile.is_tarfile(io.BytesIO(data))

    def _iter_members(self, data: bytes) -> Iterator[ArchiveEntry]:
        with tarfile.open(fileobj=io.BytesIO(data), mode='r:*') as archive:
            for member in archive:
                if not member.isfile():
                    continue
                yield ArchiveEntry(path=member.name, size=member.size)


ExtractorRegistry.register(TarExtractor)
