# ==============================================================================
# MOD CATALOG - COMMAND LINE INTERFACE
# ==============================================================================
# Command-line front-end over the catalog library.
#
# Commands:
#   - ingest:    Catalog one release archive
#   - import:    Catalog every archive under a directory (parallel)
#   - list:      List the contents of an archive without cataloging it
#   - mods:      List catalogued mods (optionally by prefix)
#   - mod:       Show one mod and its releases
#   - files:     List the entries of a release
#   - find-ext:  Find catalogued entries by extension
#   - latest:    Show the latest release of a mod
#   - delete:    Delete a mod and its releases
#   - stats:     Show catalog statistics
#
# Usage:
#   modcatalog ingest cool-mod-1.2.zip --mod "Cool Mod" --version 1.2
#   modcatalog import downloads/ --workers 8
#   modcatalog find-ext cfg
#   modcatalog latest cool-mod
# ==============================================================================

import os
import sys
import argparse
import threading
from datetime import datetime
from typing import List, Optional

from . import __version__
from .core import (
    CatalogError, CatalogQueries, Database, FileHasher, IngestJob,
    IngestionPipeline, BatchSummary, collect_archives, configure_logging,
    get_config,
)


# ==============================================================================
# COLOR HELPERS FOR TERMINAL OUTPUT
# ==============================================================================
class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'

    @classmethod
    def disable(cls):
        """Disable colors (for non-supporting terminals and pipes)."""
        cls.HEADER = ''
        cls.BLUE = ''
        cls.CYAN = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.RED = ''
        cls.BOLD = ''
        cls.END = ''


def print_header(text: str):
    """Print a header."""
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}\n")


def print_success(text: str):
    print(f"{Colors.GREEN}✓ {text}{Colors.END}")


def print_error(text: str):
    print(f"{Colors.RED}✗ {text}{Colors.END}", file=sys.stderr)


def print_info(text: str):
    print(f"{Colors.BLUE}ℹ {text}{Colors.END}")


def print_warning(text: str):
    print(f"{Colors.YELLOW}⚠ {text}{Colors.END}")


def progress_callback(current: int, total: int, filename: str):
    """Progress callback for long operations."""
    percent = (current / total) * 100 if total > 0 else 0
    bar_length = 30
    filled = int(bar_length * current / total) if total > 0 else 0
    bar = '█' * filled + '░' * (bar_length - filled)

    max_name_len = 40
    if len(filename) > max_name_len:
        filename = '...' + filename[-(max_name_len - 3):]

    print(f"\r[{bar}] {percent:5.1f}% | {current}/{total} | {filename}", end='', flush=True)

    if current >= total:
        print()


def format_date(value: datetime) -> str:
    return value.strftime('%Y-%m-%d %H:%M:%S') if value else '-'


# ==============================================================================
# DATABASE INITIALIZATION
# ==============================================================================
def get_database(args) -> Database:
    """Open the catalog named on the command line or in the config."""
    config = get_config()
    db_path = getattr(args, 'db', None) or config.database_path
    return Database(db_path, max_retries=config.max_retries,
                    busy_timeout=config.busy_timeout)


def get_pipeline(args, db: Database) -> IngestionPipeline:
    config = get_config()
    workers = getattr(args, 'workers', None) or config.ingest_workers
    strip_prefix = getattr(args, 'strip_prefix', None) or config.strip_prefix
    return IngestionPipeline(
        db,
        hasher=FileHasher(config.hash_algorithm),
        workers=workers,
        strip_prefix=strip_prefix,
    )


def parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO date: {value}")


# ==============================================================================
# INGEST COMMANDS
# ==============================================================================
def cmd_ingest(args) -> int:
    """Catalog one release archive."""
    print_header("Ingesting Release")

    if not os.path.isfile(args.archive):
        print_error(f"Archive not found: {args.archive}")
        return 1

    db = get_database(args)
    pipeline = get_pipeline(args, db)

    print_info(f"Archive: {args.archive}")

    result = pipeline.ingest_file(
        args.archive,
        mod_name=args.mod,
        slug=args.slug,
        summary=args.summary,
        description=args.description,
        version=args.version,
        changelog=args.changelog,
        date_added=parse_date(args.date),
    )

    if result.created:
        print_success(f"Catalogued as modfile {result.mod_file_id} "
                      f"(mod {result.mod_id}, {result.pack_file_count} files)")
    else:
        print_warning(f"Already catalogued as modfile {result.mod_file_id} (mod {result.mod_id})")
    print(f"Hash: {result.content_hash}")
    return 0


def cmd_import(args) -> int:
    """Catalog every archive under a directory."""
    print_header("Importing Releases")

    if not os.path.isdir(args.path):
        print_error(f"Path does not exist: {args.path}")
        return 1

    archives = collect_archives(args.path)
    if not archives:
        print_warning("No archives found")
        return 0

    db = get_database(args)
    pipeline = get_pipeline(args, db)

    print_info(f"Found {len(archives)} archives")
    print_info(f"Using {pipeline.workers} parallel workers")
    print()

    jobs = [IngestJob(path=path, mod_name=args.mod) for path in archives]
    cancel_event = threading.Event()
    try:
        outcomes = pipeline.ingest_many(jobs, progress_callback=progress_callback,
                                        cancel_event=cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        print_warning("Interrupted; releases not yet written were skipped")
        return 130

    summary = BatchSummary.from_outcomes(outcomes)

    print(f"\n{Colors.BOLD}Results:{Colors.END}")
    print(f"  {Colors.GREEN}Created:{Colors.END}         {summary.created}")
    print(f"  {Colors.YELLOW}Already present:{Colors.END} {summary.already_exists}")
    print(f"  {Colors.RED}Failed:{Colors.END}          {summary.failed}")

    for path, reason in sorted(summary.failures.items()):
        print_error(f"{path}: {reason}")

    return 1 if summary.failed else 0


def cmd_list(args) -> int:
    """List the contents of an archive."""
    print_header("Archive Contents")

    if not os.path.isfile(args.archive):
        print_error(f"Archive not found: {args.archive}")
        return 1

    with open(args.archive, 'rb') as f:
        data = f.read()

    config = get_config()
    pipeline = IngestionPipeline(None, strip_prefix=args.strip_prefix or config.strip_prefix)
    paths = pipeline.list_archive(data, os.path.basename(args.archive))

    for path in paths[:args.limit]:
        print(path)
    if len(paths) > args.limit:
        print(f"\n... and {len(paths) - args.limit} more files")

    print(f"\nFiles: {len(paths)}")
    return 0


# ==============================================================================
# QUERY COMMANDS
# ==============================================================================
def cmd_mods(args) -> int:
    """List catalogued mods."""
    print_header("Catalogued Mods")

    db = get_database(args)
    if args.prefix:
        mods = CatalogQueries(db).mods_with_prefix(args.prefix)
    else:
        mods = db.list_mods()

    if not mods:
        print_warning("No mods catalogued")
        return 0

    print(f"{'ID':<6} {'Slug':<30} {'Name':<30} {'Latest':<8}")
    print("-" * 76)
    for mod in mods:
        latest = mod.current_file_id if mod.current_file_id is not None else '-'
        print(f"{mod.id:<6} {mod.name_slug:<30} {mod.name_display:<30} {latest:<8}")

    print(f"\nTotal: {len(mods)} mods")
    return 0


def cmd_mod(args) -> int:
    """Show one mod and its releases."""
    db = get_database(args)
    mod = CatalogQueries(db).require_mod(args.mod)

    print_header(mod.name_display)
    print(f"ID:          {mod.id}")
    print(f"Slug:        {mod.name_slug}")
    print(f"Summary:     {mod.summary}")
    if mod.description:
        print(f"Description: {mod.description}")

    files = db.list_mod_files(mod.id)
    print(f"\n{'ID':<6} {'Added':<20} {'Version':<12} {'Filename':<30}")
    print("-" * 70)
    for mod_file in files:
        marker = ' *' if mod_file.id == mod.current_file_id else ''
        print(f"{mod_file.id:<6} {format_date(mod_file.date_added):<20} "
              f"{mod_file.version or '-':<12} {mod_file.filename}{marker}")

    print(f"\nTotal: {len(files)} releases (* = latest)")
    return 0


def cmd_files(args) -> int:
    """List the entries of a release."""
    db = get_database(args)
    queries = CatalogQueries(db)
    mod_file = queries.require_mod_file(args.modfile)

    print_header(f"Files in {mod_file.filename}")
    pack_files = queries.files_under(mod_file.id, args.prefix or "")
    for pack_file in pack_files:
        print(pack_file.path)

    print(f"\nTotal: {len(pack_files)} files")
    return 0


def cmd_find_ext(args) -> int:
    """Find catalogued entries by extension."""
    print_header(f"Files with extension .{args.extension.lstrip('.')}")

    db = get_database(args)
    if args.releases:
        for mod_file in CatalogQueries(db).releases_with_extension(args.extension):
            print(f"{mod_file.id:<6} mod {mod_file.mod_id:<6} {mod_file.filename}")
        return 0

    count = 0
    for pack_file in db.find_by_extension(args.extension):
        print(f"{pack_file.mod_file_id:<6} {pack_file.path}")
        count += 1
    print(f"\nTotal: {count} files")
    return 0


def cmd_latest(args) -> int:
    """Show the latest release of a mod."""
    db = get_database(args)
    mod_file = CatalogQueries(db).latest_version(args.mod)
    if mod_file is None:
        print_warning(f"Mod {args.mod} has no releases")
        return 0

    print(f"Modfile:  {mod_file.id}")
    print(f"Filename: {mod_file.filename}")
    print(f"Version:  {mod_file.version or '-'}")
    print(f"Added:    {format_date(mod_file.date_added)}")
    print(f"Hash:     {mod_file.content_hash}")
    return 0


def cmd_delete(args) -> int:
    """Delete a mod and its releases."""
    db = get_database(args)
    mod = CatalogQueries(db).require_mod(args.mod)
    deleted = db.delete_mod(mod.id, cascade=args.cascade)
    print_success(f"Deleted mod {mod.name_slug} ({deleted} releases)")
    return 0


def cmd_stats(args) -> int:
    """Show catalog statistics."""
    print_header("Mod Catalog Statistics")

    db = get_database(args)
    stats = db.get_stats()

    print(f"Database:    {db.db_path}")
    print(f"Mods:        {stats['mods']}")
    print(f"Releases:    {stats['mod_files']}")
    print(f"Pack files:  {stats['pack_files']}")
    return 0


# ==============================================================================
# MAIN ARGUMENT PARSER
# ==============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='modcatalog',
        description="Mod Catalog - catalog mod releases and the files inside them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ingest cool-mod.zip --mod "Cool Mod"   Catalog one release
  %(prog)s import downloads/                      Catalog a whole folder
  %(prog)s find-ext cfg --releases                Releases containing .cfg files
  %(prog)s latest cool-mod                        Latest release of a mod
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--db', help='Path to the catalog database')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # -------------------------------------------------------------------------
    # INGEST commands
    # -------------------------------------------------------------------------
    ingest = subparsers.add_parser('ingest', help='Catalog one release archive')
    ingest.add_argument('archive', help='Release archive file')
    ingest.add_argument('--mod', help='Mod display name (default: archive name)')
    ingest.add_argument('--slug', help='Mod slug (default: derived from the name)')
    ingest.add_argument('--summary', help='Mod summary (default: the name)')
    ingest.add_argument('--description', help='Mod description')
    ingest.add_argument('--version', dest='version', help='Release version')
    ingest.add_argument('--changelog', help='Release changelog')
    ingest.add_argument('--date', help='Release date (ISO 8601, default: now)')
    ingest.add_argument('--strip-prefix', help='Prefix removed from archive paths')
    ingest.set_defaults(func=cmd_ingest)

    imp = subparsers.add_parser('import', help='Catalog every archive in a directory')
    imp.add_argument('path', help='Directory to scan')
    imp.add_argument('--mod', help='Catalog every archive under this mod name')
    imp.add_argument('--workers', type=int, help='Parallel workers')
    imp.add_argument('--strip-prefix', help='Prefix removed from archive paths')
    imp.set_defaults(func=cmd_import)

    lst = subparsers.add_parser('list', help='List archive contents')
    lst.add_argument('archive', help='Archive file to list')
    lst.add_argument('--limit', type=int, default=100, help='Max files to show')
    lst.add_argument('--strip-prefix', help='Prefix removed from archive paths')
    lst.set_defaults(func=cmd_list)

    # -------------------------------------------------------------------------
    # QUERY commands
    # -------------------------------------------------------------------------
    mods = subparsers.add_parser('mods', help='List catalogued mods')
    mods.add_argument('--prefix', help='Only mods whose slug or name starts with this')
    mods.set_defaults(func=cmd_mods)

    mod = subparsers.add_parser('mod', help='Show a mod and its releases')
    mod.add_argument('mod', help='Mod id or slug')
    mod.set_defaults(func=cmd_mod)

    files = subparsers.add_parser('files', help='List the files of a release')
    files.add_argument('modfile', type=int, help='Modfile id')
    files.add_argument('--prefix', help='Only paths under this prefix')
    files.set_defaults(func=cmd_files)

    find_ext = subparsers.add_parser('find-ext', help='Find files by extension')
    find_ext.add_argument('extension', help='Extension, with or without the dot')
    find_ext.add_argument('--releases', action='store_true',
                          help='List the releases instead of the files')
    find_ext.set_defaults(func=cmd_find_ext)

    latest = subparsers.add_parser('latest', help='Show the latest release of a mod')
    latest.add_argument('mod', help='Mod id or slug')
    latest.set_defaults(func=cmd_latest)

    delete = subparsers.add_parser('delete', help='Delete a mod and its releases')
    delete.add_argument('mod', help='Mod id or slug')
    delete.add_argument('--no-cascade', dest='cascade', action='store_false',
                        help='Refuse if the mod still has releases')
    delete.set_defaults(func=cmd_delete)

    stats = subparsers.add_parser('stats', help='Show catalog statistics')
    stats.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()

    configure_logging(debug=args.debug or get_config().debug_mode)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except argparse.ArgumentTypeError as e:
        print_error(str(e))
        return 2
    except CatalogError as e:
        print_error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
