# ==============================================================================
# FILE HASHER MODULE
# ==============================================================================
# Content digests for release archives. The digest is what makes ingestion
# idempotent: the same bytes for the same mod always produce the same
# content_hash, and (mod_id, content_hash) is unique in the catalog.
#
# Supports MD5 (default, matches the hash_md5 published by mod hosts) and
# SHA256.
#
# Usage:
#   hasher = FileHasher()
#   digest = hasher.hash_bytes(archive_bytes)
# ==============================================================================

import hashlib


SUPPORTED_ALGORITHMS = ('md5', 'sha256')


class FileHasher:
    """
    Hashing utility for release archives.

    Attributes:
        algorithm (str):  'md5' or 'sha256'
    """

    def __init__(self, algorithm: str = 'md5'):
        """
        Initialize the hasher.

        Args:
            algorithm: Digest algorithm, 'md5' or 'sha256'

        Raises:
            ValueError: If the algorithm is not supported
        """
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(
                f"Unsupported hash algorithm {algorithm!r}, "
                f"expected one of {', '.join(SUPPORTED_ALGORITHMS)}"
            )
        self.algorithm = algorithm

    def _new(self):
        return hashlib.new(self.algorithm)

    # ==========================================================================
    # HASHING
    # ==========================================================================

    def hash_bytes(self, data: bytes) -> str:
        """
        Compute the digest of raw bytes.

        Example:
            >>> FileHasher().hash_bytes(b"Hello World")
            'b10a8db164e0754105b7a99be72e3fe5'
        """
        digest = self._new()
        digest.update(data)
        return digest.hexdigest()
