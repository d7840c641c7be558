# ==============================================================================
# CATALOG QUERIES MODULE
# ==============================================================================
# Read-only convenience lookups layered over the catalog store:
#   - latest release of a mod
#   - mods whose slug or display name starts with a prefix
#   - entries of a release under a path prefix
#   - releases that contain a file with a given extension
#   - releases with a given content hash
#
# Every method is a composition of Database calls plus filtering/sorting.
# Nothing is cached, so results always reflect the committed catalog.
# ==============================================================================

from typing import List, Optional, Union

from .database import Database, Mod, ModFile, PackFile
from .errors import NotFoundError


class CatalogQueries:
    """
    Read-side lookups over a Database.

    Usage:
        queries = CatalogQueries(db)
        latest = queries.latest_version("cool-mod")
        cfgs = queries.releases_with_extension("cfg")
    """

    def __init__(self, db: Database):
        self.db = db

    def require_mod(self, id_or_slug: Union[int, str]) -> Mod:
        """Like Database.get_mod() but raises NotFoundError."""
        mod = self.db.get_mod(id_or_slug)
        if mod is None:
            raise NotFoundError("mod", id_or_slug)
        return mod

    def require_mod_file(self, mod_file_id: int) -> ModFile:
        """Like Database.get_mod_file() but raises NotFoundError."""
        mod_file = self.db.get_mod_file(mod_file_id)
        if mod_file is None:
            raise NotFoundError("modfile", mod_file_id)
        return mod_file

    def latest_version(self, id_or_slug: Union[int, str]) -> Optional[ModFile]:
        """
        Latest release of a mod, or None if it has no releases.

        Raises:
            NotFoundError: If the mod does not exist
        """
        mod = self.require_mod(id_or_slug)
        if mod.current_file_id is None:
            return None
        return self.db.get_mod_file(mod.current_file_id)

    def mods_with_prefix(self, prefix: str) -> List[Mod]:
        """Mods whose slug or display name starts with prefix (case-insensitive)."""
        prefix = prefix.lower()
        return [
            mod for mod in self.db.list_mods()
            if mod.name_slug.lower().startswith(prefix)
            or mod.name_display.lower().startswith(prefix)
        ]

    def files_under(self, mod_file_id: int, path_prefix: str = "") -> List[PackFile]:
        """
        Entries of a release whose path starts with path_prefix, by path.

        Raises:
            NotFoundError: If the release does not exist
        """
        self.require_mod_file(mod_file_id)
        return [
            pack_file for pack_file in self.db.list_pack_files(mod_file_id)
            if pack_file.path.startswith(path_prefix)
        ]

    def releases_with_extension(self, extension: str) -> List[ModFile]:
        """Distinct releases containing at least one file with the extension."""
        mod_file_ids = sorted({
            pack_file.mod_file_id for pack_file in self.db.find_by_extension(extension)
        })
        releases = []
        for mod_file_id in mod_file_ids:
            mod_file = self.db.get_mod_file(mod_file_id)
            # Deleted between the two reads
            if mod_file is not None:
                releases.append(mod_file)
        return releases

    def mod_files_by_hash(self, content_hash: str) -> List[ModFile]:
        """Every release, of any mod, with this content hash."""
        return self.db.find_mod_files_by_hash(content_hash.lower())
