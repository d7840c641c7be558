# ==============================================================================
# INGESTION PIPELINE MODULE
# ==============================================================================
# Turns a raw release archive plus its metadata (mod name, version,
# changelog) into a fully catalogued ModFile.
#
# Steps for one release:
#   1. Hash the raw bytes
#   2. Short-circuit if this mod already has a release with that hash
#   3. Extract the archive entry list and derive the pack file columns
#   4. Reject duplicate paths
#   5. Write mod + modfile + pack files in ONE transaction
#
# Nothing is written before step 5, so a failed extraction never leaves
# rows behind. Concurrent ingestions of identical bytes end with one
# "created" and one "already_exists".
#
# Usage:
#   pipeline = IngestionPipeline(database)
#   result = pipeline.ingest_file("downloads/cool-mod-1.2.zip",
#                                 mod_name="Cool Mod", version="1.2")
#   print(result.status, result.mod_file_id)
# ==============================================================================

import os
import re
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed

from .database import Database, PackEntry, ModFileInsert, CREATED, ALREADY_EXISTS
from .errors import (
    CatalogError, DuplicatePathError, ExtractionFailedError, IngestionCancelled,
    ValidationError,
)
from .hasher import FileHasher
from ..extractors import ExtractorRegistry, ArchiveEntry

logger = logging.getLogger(__name__)


# ==============================================================================
# PATH AND NAME HELPERS
# ==============================================================================

def split_pack_path(path: str) -> PackEntry:
    """
    Derive the pack file columns from an archive path.

    The name is the text after the last '/'. The extension is the text
    after the last '.' of the name. A name without a dot, with only a
    leading dot (".gitignore") or ending in a dot has no extension, and
    then path_no_extension equals path.

    Example:
        >>> split_pack_path("textures/icon.png")
        PackEntry(path='textures/icon.png', path_no_extension='textures/icon', name='icon.png', extension='png')
    """
    name = path.rsplit('/', 1)[-1]
    dot = name.rfind('.')
    if dot <= 0 or dot == len(name) - 1:
        return PackEntry(path=path, path_no_extension=path, name=name, extension=None)

    extension = name[dot + 1:]
    return PackEntry(
        path=path,
        path_no_extension=path[:-(len(extension) + 1)],
        name=name,
        extension=extension,
    )


def make_slug(name: str) -> str:
    """
    Normalize a display name into a slug.

    Runs of anything but letters and digits (in any script) become one
    hyphen. The result is empty when the name has no letters or digits.

    Example:
        >>> make_slug("Cool Mod (v2)!")
        'cool-mod-v2'
        >>> make_slug("Мод 2")
        'мод-2'
    """
    slug = re.sub(r'[\W_]+', '-', name.lower())
    return slug.strip('-')


def build_pack_entries(entries: Iterable[ArchiveEntry], filename: str) -> List[PackEntry]:
    """
    Convert extracted entries to pack entries, rejecting duplicate paths.

    Raises:
        DuplicatePathError: If two entries share a path
    """
    pack_entries = []
    seen = set()
    for entry in entries:
        if entry.path in seen:
            raise DuplicatePathError(entry.path, filename)
        seen.add(entry.path)
        pack_entries.append(split_pack_path(entry.path))
    return pack_entries


# ==============================================================================
# RESULT DATA CLASSES
# ==============================================================================
@dataclass
class IngestResult:
    """
    Successful outcome of ingesting one release.

    Attributes:
        status (str):        CREATED or ALREADY_EXISTS
        filename (str):      Archive filename
        content_hash (str):  Digest of the archive bytes
        mod_id (int):        Owning mod
        mod_file_id (int):   New or existing ModFile id
        pack_file_count (int): Entries written (0 when already catalogued)
    """
    status: str
    filename: str
    content_hash: str
    mod_id: int
    mod_file_id: int
    pack_file_count: int = 0

    @property
    def created(self) -> bool:
        return self.status == CREATED

    @property
    def already_exists(self) -> bool:
        return self.status == ALREADY_EXISTS


@dataclass
class IngestJob:
    """One release to ingest in a batch (see IngestionPipeline.ingest_many)."""
    path: str
    mod_name: Optional[str] = None
    slug: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    changelog: Optional[str] = None
    date_added: Optional[datetime] = None


@dataclass
class IngestOutcome:
    """Result of one batch job: exactly one of result / error is set."""
    job: IngestJob
    result: Optional[IngestResult] = None
    error: Optional[CatalogError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary:
    """Counts over a list of IngestOutcome."""
    created: int = 0
    already_exists: int = 0
    failed: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[IngestOutcome]) -> 'BatchSummary':
        summary = cls()
        for outcome in outcomes:
            if outcome.error is not None:
                summary.failed += 1
                summary.failures[outcome.job.path] = str(outcome.error)
            elif outcome.result.created:
                summary.created += 1
            else:
                summary.already_exists += 1
        return summary


# ==============================================================================
# INGESTION PIPELINE CLASS
# ==============================================================================
class IngestionPipeline:
    """
    Orchestrates hashing, extraction and the catalog write for releases.

    The pipeline keeps no catalog state between calls, so one instance can
    be shared by many threads.

    Attributes:
        db (Database):        Catalog store
        hasher (FileHasher):  Content digest
        workers (int):        Threads used by ingest_many()
        strip_prefix (str):   Mount prefix removed from archive paths
    """

    DEFAULT_WORKERS = 4

    def __init__(self, db: Database, hasher: FileHasher = None,
                 workers: int = DEFAULT_WORKERS, strip_prefix: Optional[str] = None):
        self.db = db
        self.hasher = hasher or FileHasher()
        self.workers = max(1, workers)
        self.strip_prefix = strip_prefix

    # ==========================================================================
    # EXTRACTION
    # ==========================================================================

    def _extract(self, data: bytes, filename: str) -> List[ArchiveEntry]:
        """
        Run the extractor for an archive.

        Raises:
            ExtractionFailedError: Unknown format or unreadable archive
        """
        extractor = ExtractorRegistry.get_extractor_for_bytes(
            data, filename, strip_prefix=self.strip_prefix
        )
        if extractor is None:
            supported = ", ".join(ExtractorRegistry.list_supported_extensions())
            raise ExtractionFailedError(
                filename, reason=f"unrecognized archive format (supported: {supported})"
            )

        try:
            return extractor.list_entries(data)
        except Exception as e:
            # The extractor is backed by third-party format code; whatever it
            # raises is reported as an extraction failure of this file.
            raise ExtractionFailedError(filename, cause=e) from e

    def list_archive(self, data: bytes, filename: str = "<archive>") -> List[str]:
        """
        List the entry paths of an archive without cataloging it.

        Raises:
            ExtractionFailedError: Unknown format or unreadable archive
        """
        return [entry.path for entry in self._extract(data, filename)]

    # ==========================================================================
    # SINGLE RELEASE
    # ==========================================================================

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event], filename: str):
        if cancel_event is not None and cancel_event.is_set():
            raise IngestionCancelled(filename)

    def ingest(self, data: bytes, filename: str, mod_name: str,
               summary: Optional[str] = None, slug: Optional[str] = None,
               description: Optional[str] = None, version: Optional[str] = None,
               changelog: Optional[str] = None, date_added: Optional[datetime] = None,
               cancel_event: Optional[threading.Event] = None) -> IngestResult:
        """
        Catalog one release archive.

        Args:
            data: Raw archive bytes
            filename: Archive filename
            mod_name: Display name of the owning mod
            summary: Mod summary for a new mod (defaults to mod_name)
            slug: Mod slug (defaults to make_slug(mod_name))
            description: Optional mod description for a new mod
            version: Optional release version
            changelog: Optional release changelog
            date_added: Release timestamp (defaults to now)
            cancel_event: If set before the write, nothing is catalogued

        Returns:
            IngestResult with status CREATED or ALREADY_EXISTS

        Raises:
            ValidationError: No slug can be derived from mod_name
            ExtractionFailedError: The archive could not be read
            DuplicatePathError: The archive lists a path twice
            IngestionCancelled: cancel_event was set before the write
            ConflictError / StorageFailedError: from the catalog store
        """
        slug = slug or make_slug(mod_name or "")
        if not slug:
            raise ValidationError(f"cannot derive a mod slug from {mod_name!r}")
        summary = summary or mod_name

        # 1. Hash
        content_hash = self.hasher.hash_bytes(data)
        self._check_cancel(cancel_event, filename)

        # 2. Idempotence short-circuit (an optimization; the unique index
        #    decides when two ingestions race)
        mod = self.db.get_mod_by_slug(slug)
        if mod is not None:
            existing = self.db.find_mod_file(mod.id, content_hash)
            if existing is not None:
                logger.info("%s already ingested for %s (modfile %s)",
                            filename, slug, existing.id)
                return IngestResult(ALREADY_EXISTS, filename, content_hash,
                                    mod.id, existing.id)

        # 3-4. Extract and derive pack entries
        entries = self._extract(data, filename)
        pack_entries = build_pack_entries(entries, filename)
        self._check_cancel(cancel_event, filename)

        # 5. One transaction for everything
        inserted: ModFileInsert = self.db.insert_release(
            name_slug=slug,
            name_display=mod_name,
            summary=summary,
            description=description,
            content_hash=content_hash,
            filename=filename,
            version=version,
            changelog=changelog,
            pack_entries=pack_entries,
            date_added=date_added,
        )

        return IngestResult(
            status=inserted.status,
            filename=filename,
            content_hash=content_hash,
            mod_id=inserted.mod_file.mod_id,
            mod_file_id=inserted.mod_file.id,
            pack_file_count=len(pack_entries) if inserted.created else 0,
        )

    def ingest_file(self, path: str, mod_name: Optional[str] = None,
                    filename: Optional[str] = None, **metadata) -> IngestResult:
        """
        Read a release archive from disk and catalog it.

        The mod name defaults to the file name without its extension.

        Raises:
            ExtractionFailedError: The file could not be read
            (plus everything ingest() raises)
        """
        filename = filename or os.path.basename(path)
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise ExtractionFailedError(filename, cause=e) from e

        mod_name = mod_name or os.path.splitext(filename)[0]
        return self.ingest(data, filename, mod_name, **metadata)

    # ==========================================================================
    # BATCH
    # ==========================================================================

    def _run_job(self, job: IngestJob, cancel_event: Optional[threading.Event]) -> IngestOutcome:
        try:
            result = self.ingest_file(
                job.path,
                mod_name=job.mod_name,
                slug=job.slug,
                summary=job.summary,
                description=job.description,
                version=job.version,
                changelog=job.changelog,
                date_added=job.date_added,
                cancel_event=cancel_event,
            )
            return IngestOutcome(job, result=result)
        except CatalogError as e:
            logger.warning("Failed to ingest %s: %s", job.path, e)
            return IngestOutcome(job, error=e)

    def ingest_many(self, jobs: Iterable[IngestJob],
                    progress_callback: Callable[[int, int, str], None] = None,
                    cancel_event: Optional[threading.Event] = None) -> List[IngestOutcome]:
        """
        Ingest several releases concurrently.

        A failing release is reported in its outcome and never stops the
        rest of the batch. Outcomes are returned in job order.

        Args:
            jobs: Releases to ingest
            progress_callback: Optional callback(current, total, filename)
            cancel_event: Cancels every job that has not been written yet

        If the caller's thread is interrupted (KeyboardInterrupt, or an
        exception from progress_callback), the batch is cancelled and the
        exception propagates once running jobs have stopped.

        Returns:
            One IngestOutcome per job
        """
        jobs = list(jobs)
        total = len(jobs)
        outcomes: List[Optional[IngestOutcome]] = [None] * total
        if not jobs:
            return []

        logger.info("Ingesting %d release(s) with %d worker(s)", total, self.workers)

        if cancel_event is None:
            cancel_event = threading.Event()

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(self._run_job, job, cancel_event): index
                for index, job in enumerate(jobs)
            }
            try:
                for done, future in enumerate(as_completed(futures), start=1):
                    index = futures[future]
                    outcomes[index] = future.result()
                    if progress_callback:
                        progress_callback(done, total, os.path.basename(jobs[index].path))
            except BaseException:
                # Queued jobs never start; running ones stop before their write
                cancel_event.set()
                executor.shutdown(wait=True, cancel_futures=True)
                logger.warning("Batch interrupted; unfinished releases were skipped")
                raise

        summary = BatchSummary.from_outcomes(outcomes)
        logger.info("Batch finished: %d created, %d already present, %d failed",
                    summary.created, summary.already_exists, summary.failed)
        return outcomes


def collect_archives(directory: str, extensions: Optional[Tuple[str, ...]] = None) -> List[str]:
    """
    Find release archives under a directory, sorted by path.

    Args:
        directory: Folder to scan recursively
        extensions: Extensions to include (defaults to every supported one)
    """
    if not os.path.isdir(directory):
        raise ValueError(f"Directory does not exist: {directory}")

    extensions = tuple(e.lower() for e in (extensions or ExtractorRegistry.list_supported_extensions()))
    found = []
    for root, dirs, files in os.walk(directory):
        for filename in files:
            if filename.lower().endswith(extensions):
                found.append(os.path.join(root, filename))
    return sorted(found)
