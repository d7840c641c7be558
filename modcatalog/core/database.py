# ==============================================================================
# DATABASE MODULE
# ==============================================================================
# SQLite catalog of mods, their release files and the entries inside each
# release archive. Uses SQLAlchemy ORM for clean data access.
#
# Tables:
#   - mod:       a modification package (unique, immutable name_slug)
#   - modfile:   one versioned release archive of a mod
#   - pack_file: one entry inside a release archive
#
# Ownership: mod 1:N modfile 1:N pack_file. mod.current_file_id is a plain
# back reference to the latest modfile and is cleared before that modfile
# is deleted. Foreign keys are DEFERRABLE INITIALLY DEFERRED, so they are
# checked when the transaction commits.
#
# Transactions:
#   Every write runs in its own session that starts with BEGIN IMMEDIATE,
#   which makes SQLite writers serializable. A unique-constraint violation
#   or a "database is locked" error aborts the transaction, and the
#   operation is retried (re-reading first) up to max_retries times.
# ==============================================================================

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from sqlalchemy import (
    create_engine, event, func, Column, Integer, String, DateTime, ForeignKey,
    Text, UniqueConstraint, Index,
)
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from .errors import (
    ConflictError, DuplicatePathError, NotEmptyError, NotFoundError,
    StorageFailedError, ValidationError,
)

logger = logging.getLogger(__name__)

# ==============================================================================
# SQLAlchemy Base Class
# ==============================================================================
Base = declarative_base()


def _deferred_fk(target: str, **kwargs) -> ForeignKey:
    return ForeignKey(target, deferrable=True, initially='DEFERRED', **kwargs)


def utc_naive(value: Optional[datetime]) -> datetime:
    """
    Convert a timestamp to the naive-UTC form stored in the catalog.

    SQLite DateTime columns drop the offset, so aware values are shifted
    to UTC first. Naive values are taken as UTC already; None means now.
    """
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ==============================================================================
# MOD MODEL
# ==============================================================================
# A logical modification package. Created the first time any release of a
# new mod name is ingested.
#
# Example:
#   mod = Mod(name_display="Cool Mod", name_slug="cool-mod",
#             summary="Makes things cooler")
# ==============================================================================
class Mod(Base):
    """
    A modification package.

    Attributes:
        id (int):               Stable integer identity
        name_display (str):     Human-readable name (e.g., "Cool Mod")
        name_slug (str):        Normalized identifier, unique and immutable
        summary (str):          One-line summary, never empty
        description (str):      Optional long description
        current_file_id (int):  Latest release (ModFile id) or None
    """
    __tablename__ = 'mod'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name_display = Column(Text, nullable=False)
    name_slug = Column(String(200), unique=True, nullable=False)
    summary = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    # Non-owning back reference. use_alter breaks the mod <-> modfile cycle
    # for metadata sorting; SQLite renders it inline.
    current_file_id = Column(
        Integer,
        _deferred_fk('modfile.id', use_alter=True, name='fk_mod_current_file'),
        nullable=True,
    )

    files = relationship(
        "ModFile",
        back_populates="mod",
        foreign_keys="ModFile.mod_id",
        order_by="ModFile.id",
    )

    def __repr__(self):
        return f"<Mod(id={self.id}, slug='{self.name_slug}', current_file_id={self.current_file_id})>"


# ==============================================================================
# MODFILE MODEL
# ==============================================================================
# One versioned release archive. (mod_id, content_hash) is unique: the same
# bytes ingested twice for a mod are recorded once.
# ==============================================================================
class ModFile(Base):
    """
    A release archive belonging to a mod.

    Attributes:
        id (int):            Unique identifier
        mod_id (int):        Owning mod
        date_added:          Ingestion (or release) timestamp, naive UTC, immutable
        content_hash (str):  Hex digest of the raw archive bytes
        filename (str):      Original archive filename
        version (str):       Optional version label
        changelog (str):     Optional changelog text
    """
    __tablename__ = 'modfile'
    __table_args__ = (
        UniqueConstraint('mod_id', 'content_hash', name='uq_modfile_mod_hash'),
        Index('ix_modfile_content_hash', 'content_hash'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    mod_id = Column(Integer, _deferred_fk('mod.id'), nullable=False)
    date_added = Column(DateTime, nullable=False, default=lambda: utc_naive(None))
    content_hash = Column(String(64), nullable=False)
    filename = Column(Text, nullable=False)
    version = Column(Text, nullable=True)
    changelog = Column(Text, nullable=True)

    mod = relationship("Mod", back_populates="files", foreign_keys=[mod_id])
    pack_files = relationship(
        "PackFile",
        back_populates="mod_file",
        cascade="all, delete-orphan",
        order_by="PackFile.path",
    )

    def __repr__(self):
        return f"<ModFile(id={self.id}, mod_id={self.mod_id}, filename='{self.filename}')>"


# ==============================================================================
# PACK FILE MODEL
# ==============================================================================
# One entry of a release archive. Identity is (path, mod_file_id).
#
# Example:
#   PackFile(mod_file_id=1, path="textures/icon.png",
#            path_no_extension="textures/icon", name="icon.png",
#            extension="png")
# ==============================================================================
class PackFile(Base):
    """
    An entry inside a release archive.

    Attributes:
        mod_file_id (int):       Owning release
        path (str):              Full relative path within the archive
        path_no_extension (str): path without its extension
        name (str):              Base file name
        extension (str):         Extension without the dot, or None
    """
    __tablename__ = 'pack_file'

    path = Column(Text, primary_key=True)
    mod_file_id = Column(Integer, _deferred_fk('modfile.id'), primary_key=True)
    path_no_extension = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    extension = Column(Text, nullable=True)

    mod_file = relationship("ModFile", back_populates="pack_files")

    def __repr__(self):
        return f"<PackFile(mod_file_id={self.mod_file_id}, path='{self.path}')>"


# Extension lookups compare lower(extension); the index has to be on the
# same expression for SQLite to use it.
Index('ix_pack_file_extension_lower', func.lower(PackFile.extension))


# ==============================================================================
# RESULT / INPUT TYPES
# ==============================================================================
@dataclass(frozen=True)
class PackEntry:
    """A pack file row before it is written (see ingest.split_pack_path)."""
    path: str
    path_no_extension: str
    name: str
    extension: Optional[str] = None


CREATED = 'created'
ALREADY_EXISTS = 'already_exists'


@dataclass
class ModFileInsert:
    """
    Outcome of Database.insert_mod_file().

    status is CREATED when a new row was written, ALREADY_EXISTS when the
    (mod_id, content_hash) pair was already catalogued. mod_file is the
    new or the existing row either way.
    """
    status: str
    mod_file: ModFile

    @property
    def created(self) -> bool:
        return self.status == CREATED

    @property
    def mod_file_id(self) -> int:
        return self.mod_file.id


# ==============================================================================
# SQLITE CONNECTION HOOKS
# ==============================================================================
# pysqlite's own transaction handling is switched off so that BEGIN is under
# our control: BEGIN IMMEDIATE for write sessions, plain BEGIN for reads.

_WRITE_OPTION = 'modcatalog_write'


def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def _on_begin(conn):
    if conn.get_execution_options().get(_WRITE_OPTION):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
    else:
        conn.exec_driver_sql("BEGIN")


def _is_retryable(error: SQLAlchemyError) -> bool:
    """Unique-constraint losses and lock timeouts are worth another attempt."""
    message = str(getattr(error, 'orig', error)).lower()
    if isinstance(error, IntegrityError):
        return 'unique' in message or 'primary key' in message
    if isinstance(error, OperationalError):
        return 'locked' in message or 'busy' in message
    return False


# ==============================================================================
# DATABASE CLASS
# ==============================================================================
# Catalog store. Handles connection, session management and the
# transactional operations on the mod -> modfile -> pack_file hierarchy.
#
# Usage:
#   db = Database("/home/me/.config/ModCatalog/catalog.db")
#   mod = db.upsert_mod("cool-mod", "Cool Mod", "Makes things cooler")
#   result = db.insert_mod_file(mod.id, digest, "cool-mod.zip", "1.0",
#                               None, entries)
# ==============================================================================
class Database:
    """
    Catalog store backed by SQLite.

    Objects returned by this class are detached from their session; their
    column attributes stay loaded (expire_on_commit=False) but relationships
    that were not loaded must not be accessed.

    Attributes:
        db_path (str):      Path to the SQLite database file
        engine:             SQLAlchemy engine for read sessions
        Session:            Session factory for reads
        WriteSession:       Session factory for serializable writes
        max_retries (int):  Attempts for a write that loses a race
    """

    DEFAULT_MAX_RETRIES = 3
    DEFAULT_BUSY_TIMEOUT = 30.0

    # Rows fetched per round trip by find_by_extension()
    YIELD_PER = 500

    def __init__(self, db_path: str, max_retries: int = DEFAULT_MAX_RETRIES,
                 busy_timeout: float = DEFAULT_BUSY_TIMEOUT, echo: bool = False):
        """
        Open (and create if needed) the catalog database.

        Args:
            db_path: Path to the SQLite database file.
                     The file and its directory are created if missing.
            max_retries: Write attempts before ConflictError is raised
            busy_timeout: Seconds SQLite waits on a locked database
            echo: Log every SQL statement (debugging)
        """
        self.db_path = db_path
        self.max_retries = max(1, int(max_retries))

        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(
            f'sqlite:///{db_path}',
            echo=echo,
            connect_args={'timeout': busy_timeout, 'check_same_thread': False},
        )
        event.listen(self.engine, 'connect', _on_connect)
        event.listen(self.engine, 'begin', _on_begin)

        write_engine = self.engine.execution_options(**{_WRITE_OPTION: True})

        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.WriteSession = sessionmaker(bind=write_engine, expire_on_commit=False)

        self._create_tables()

    def _create_tables(self):
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def close(self):
        """Dispose of pooled connections."""
        self.engine.dispose()

    # ==========================================================================
    # SESSION HELPERS
    # ==========================================================================

    @contextmanager
    def _read(self, operation: str):
        session = self.Session()
        try:
            yield session
        except SQLAlchemyError as e:
            raise StorageFailedError(operation, e) from e
        finally:
            session.close()

    def _write(self, operation: str, work):
        """
        Run work(session) in a serializable transaction and commit it.

        The transaction is retried when it loses a uniqueness race or times
        out on the database lock. work() must be safe to re-run: it has to
        re-read whatever it checks.
        """
        last_error: Optional[SQLAlchemyError] = None
        for attempt in range(1, self.max_retries + 1):
            session = self.WriteSession()
            try:
                result = work(session)
                session.commit()
                return result
            except SQLAlchemyError as e:
                session.rollback()
                if not _is_retryable(e):
                    raise StorageFailedError(operation, e) from e
                last_error = e
                logger.debug("%s lost a race (attempt %d/%d): %s",
                             operation, attempt, self.max_retries, e)
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

        raise ConflictError(operation, self.max_retries) from last_error

    # ==========================================================================
    # MOD OPERATIONS
    # ==========================================================================

    @staticmethod
    def _validate_mod_fields(name_slug: str, name_display: str, summary: str):
        if not name_slug or not name_slug.strip():
            raise ValidationError("name_slug must not be empty")
        if not name_display or not name_display.strip():
            raise ValidationError("name_display must not be empty")
        if not summary or not summary.strip():
            raise ValidationError("summary must not be empty")

    @staticmethod
    def _get_or_create_mod(session, name_slug: str, name_display: str,
                           summary: str, description: Optional[str]) -> Mod:
        mod = session.query(Mod).filter(Mod.name_slug == name_slug).first()
        if mod is None:
            mod = Mod(
                name_slug=name_slug,
                name_display=name_display,
                summary=summary,
                description=description,
            )
            session.add(mod)
            session.flush()
            logger.info("Created mod %s (ID: %s)", name_slug, mod.id)
        return mod

    def upsert_mod(self, name_slug: str, name_display: str, summary: str,
                   description: Optional[str] = None) -> Mod:
        """
        Return the mod with this slug, creating it if it does not exist.

        An existing mod is returned untouched: its slug is immutable and
        its other fields are not overwritten.

        Raises:
            ValidationError: If the slug, display name or summary is empty
            ConflictError: If the insert kept losing races
            StorageFailedError: On database failure
        """
        self._validate_mod_fields(name_slug, name_display, summary)

        def work(session):
            return self._get_or_create_mod(session, name_slug, name_display,
                                           summary, description)

        return self._write("upsert_mod", work)

    def get_mod(self, id_or_slug: Union[int, str]) -> Optional[Mod]:
        """
        Get a mod by integer id or by slug.

        A string made of digits is tried as an id first, then as a slug.
        """
        with self._read("get_mod") as session:
            return self._lookup_mod(session, id_or_slug)

    @staticmethod
    def _lookup_mod(session, id_or_slug: Union[int, str]) -> Optional[Mod]:
        if isinstance(id_or_slug, int):
            return session.get(Mod, id_or_slug)
        if id_or_slug.isdigit():
            mod = session.get(Mod, int(id_or_slug))
            if mod is not None:
                return mod
        return session.query(Mod).filter(Mod.name_slug == id_or_slug).first()

    def get_mod_by_slug(self, name_slug: str) -> Optional[Mod]:
        """Get a mod by slug only; a numeric slug is never read as an id."""
        with self._read("get_mod_by_slug") as session:
            return session.query(Mod).filter(Mod.name_slug == name_slug).first()

    def list_mods(self) -> List[Mod]:
        """Get all mods ordered by slug."""
        with self._read("list_mods") as session:
            return session.query(Mod).order_by(Mod.name_slug).all()

    def delete_mod(self, mod_id: int, cascade: bool = True) -> int:
        """
        Delete a mod together with its release files and their pack files.

        Runs as one transaction: current_file_id references to the mod's
        files are cleared first, then pack files, modfiles and the mod row
        are removed.

        Args:
            mod_id: ID of the mod to delete
            cascade: If False, refuse to delete a mod that still has files

        Returns:
            Number of release files deleted

        Raises:
            NotFoundError: If the mod does not exist
            NotEmptyError: If cascade is False and the mod has files
        """
        def work(session):
            mod = session.get(Mod, mod_id)
            if mod is None:
                raise NotFoundError("mod", mod_id)

            file_ids = [
                row[0] for row in
                session.query(ModFile.id).filter(ModFile.mod_id == mod_id).all()
            ]
            if file_ids and not cascade:
                raise NotEmptyError(mod_id, len(file_ids))

            if file_ids:
                # No mod may point at a row that is about to disappear
                session.query(Mod).filter(Mod.current_file_id.in_(file_ids)).update(
                    {Mod.current_file_id: None}, synchronize_session=False
                )
                session.query(PackFile).filter(PackFile.mod_file_id.in_(file_ids)).delete(
                    synchronize_session=False
                )
                session.query(ModFile).filter(ModFile.id.in_(file_ids)).delete(
                    synchronize_session=False
                )
            session.query(Mod).filter(Mod.id == mod_id).delete(synchronize_session=False)
            return len(file_ids)

        deleted = self._write("delete_mod", work)
        logger.info("Deleted mod %s and %d release file(s)", mod_id, deleted)
        return deleted

    # ==========================================================================
    # MODFILE OPERATIONS
    # ==========================================================================

    @staticmethod
    def _check_unique_paths(pack_entries: Sequence[PackEntry], filename: str):
        seen = set()
        for entry in pack_entries:
            if entry.path in seen:
                raise DuplicatePathError(entry.path, filename)
            seen.add(entry.path)

    @staticmethod
    def _refresh_current_file(session, mod: Mod):
        """Point mod.current_file_id at the newest sibling (tie: highest id)."""
        latest = (
            session.query(ModFile.id)
            .filter(ModFile.mod_id == mod.id)
            .order_by(ModFile.date_added.desc(), ModFile.id.desc())
            .first()
        )
        mod.current_file_id = latest[0] if latest else None

    def _insert_mod_file(self, session, mod: Mod, content_hash: str, filename: str,
                         version: Optional[str], changelog: Optional[str],
                         pack_entries: Sequence[PackEntry],
                         date_added: Optional[datetime]) -> ModFileInsert:
        existing = (
            session.query(ModFile)
            .filter(ModFile.mod_id == mod.id, ModFile.content_hash == content_hash)
            .first()
        )
        if existing is not None:
            return ModFileInsert(ALREADY_EXISTS, existing)

        mod_file = ModFile(
            mod_id=mod.id,
            date_added=utc_naive(date_added),
            content_hash=content_hash,
            filename=filename,
            version=version,
            changelog=changelog,
        )
        session.add(mod_file)
        session.flush()

        # An archive with no entries is a valid release
        if pack_entries:
            session.bulk_insert_mappings(PackFile, [
                {
                    'mod_file_id': mod_file.id,
                    'path': entry.path,
                    'path_no_extension': entry.path_no_extension,
                    'name': entry.name,
                    'extension': entry.extension,
                }
                for entry in pack_entries
            ])

        self._refresh_current_file(session, mod)
        session.flush()
        return ModFileInsert(CREATED, mod_file)

    def insert_mod_file(self, mod_id: int, content_hash: str, filename: str,
                        version: Optional[str], changelog: Optional[str],
                        pack_entries: Iterable[PackEntry],
                        date_added: Optional[datetime] = None) -> ModFileInsert:
        """
        Insert a release file and all of its pack files atomically.

        If (mod_id, content_hash) is already catalogued nothing is written
        and the existing row is returned with status ALREADY_EXISTS.

        Args:
            mod_id: Owning mod
            content_hash: Digest of the raw archive bytes
            filename: Archive filename
            version: Optional version label
            changelog: Optional changelog
            pack_entries: Entries of the archive (paths must be distinct)
            date_added: Release timestamp; aware values are converted to UTC,
                        defaults to now

        Raises:
            DuplicatePathError: If two entries share a path (nothing written)
            NotFoundError: If the mod does not exist
            ConflictError: If the transaction kept losing races
            StorageFailedError: On database failure
        """
        pack_entries = list(pack_entries)
        self._check_unique_paths(pack_entries, filename)

        def work(session):
            mod = session.get(Mod, mod_id)
            if mod is None:
                raise NotFoundError("mod", mod_id)
            return self._insert_mod_file(session, mod, content_hash, filename,
                                         version, changelog, pack_entries, date_added)

        result = self._write("insert_mod_file", work)
        self._log_insert(result)
        return result

    def insert_release(self, name_slug: str, name_display: str, summary: str,
                       description: Optional[str], content_hash: str, filename: str,
                       version: Optional[str], changelog: Optional[str],
                       pack_entries: Iterable[PackEntry],
                       date_added: Optional[datetime] = None) -> ModFileInsert:
        """
        Upsert the mod and insert the release file in a single transaction.

        This is what the ingestion pipeline uses: if anything fails, not
        even the mod row is left behind.
        """
        self._validate_mod_fields(name_slug, name_display, summary)
        pack_entries = list(pack_entries)
        self._check_unique_paths(pack_entries, filename)

        def work(session):
            mod = self._get_or_create_mod(session, name_slug, name_display,
                                          summary, description)
            return self._insert_mod_file(session, mod, content_hash, filename,
                                         version, changelog, pack_entries, date_added)

        result = self._write("insert_release", work)
        self._log_insert(result)
        return result

    @staticmethod
    def _log_insert(result: ModFileInsert):
        mod_file = result.mod_file
        if result.created:
            logger.info("Catalogued %s as modfile %s (mod %s)",
                        mod_file.filename, mod_file.id, mod_file.mod_id)
        else:
            logger.info("%s already catalogued as modfile %s",
                        mod_file.filename, mod_file.id)

    def get_mod_file(self, mod_file_id: int) -> Optional[ModFile]:
        """Get a release file by ID."""
        with self._read("get_mod_file") as session:
            return session.get(ModFile, mod_file_id)

    def find_mod_file(self, mod_id: int, content_hash: str) -> Optional[ModFile]:
        """Get the release of a mod with the given content hash."""
        with self._read("find_mod_file") as session:
            return session.query(ModFile).filter(
                ModFile.mod_id == mod_id,
                ModFile.content_hash == content_hash
            ).first()

    def find_mod_files_by_hash(self, content_hash: str) -> List[ModFile]:
        """Get every release (of any mod) with the given content hash."""
        with self._read("find_mod_files_by_hash") as session:
            return session.query(ModFile).filter(
                ModFile.content_hash == content_hash
            ).order_by(ModFile.id).all()

    def list_mod_files(self, mod_id: int) -> List[ModFile]:
        """Get all releases of a mod, oldest first."""
        with self._read("list_mod_files") as session:
            return session.query(ModFile).filter(
                ModFile.mod_id == mod_id
            ).order_by(ModFile.date_added, ModFile.id).all()

    # ==========================================================================
    # PACK FILE OPERATIONS
    # ==========================================================================

    def list_pack_files(self, mod_file_id: int) -> List[PackFile]:
        """Get the entries of a release ordered by path (code point order)."""
        with self._read("list_pack_files") as session:
            return session.query(PackFile).filter(
                PackFile.mod_file_id == mod_file_id
            ).order_by(PackFile.path).all()

    def find_by_extension(self, extension: str) -> Iterator[PackFile]:
        """
        Lazily iterate over every catalogued entry with this extension.

        The comparison is case-insensitive and a leading dot is ignored,
        so "cfg", ".cfg" and "CFG" are equivalent. Rows are fetched in
        batches of YIELD_PER while the caller iterates.
        """
        extension = extension.lstrip('.').lower()
        session = self.Session()
        try:
            query = (
                session.query(PackFile)
                .filter(func.lower(PackFile.extension) == extension)
                .order_by(PackFile.mod_file_id, PackFile.path)
                .yield_per(self.YIELD_PER)
            )
            for pack_file in query:
                yield pack_file
        except SQLAlchemyError as e:
            raise StorageFailedError("find_by_extension", e) from e
        finally:
            session.close()

    # ==========================================================================
    # STATISTICS
    # ==========================================================================

    def get_stats(self) -> dict:
        """Get row counts for the whole catalog."""
        with self._read("get_stats") as session:
            return {
                'mods': session.query(Mod).count(),
                'mod_files': session.query(ModFile).count(),
                'pack_files': session.query(PackFile).count(),
            }
