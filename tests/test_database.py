"""Tests for the catalog store."""

import types
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from modcatalog.core import (
    ALREADY_EXISTS, CREATED, ConflictError, Database, DuplicatePathError,
    NotEmptyError, NotFoundError, StorageFailedError, ValidationError, split_pack_path,
)


def entries(*paths):
    return [split_pack_path(path) for path in paths]


def test_upsert_mod_creates_then_returns_existing(db):
    created = db.upsert_mod("cool-mod", "Cool Mod", "Makes things cooler")
    again = db.upsert_mod("cool-mod", "Renamed", "Different summary", "desc")

    assert again.id == created.id
    assert again.name_display == "Cool Mod"
    assert again.summary == "Makes things cooler"
    assert again.description is None
    assert len(db.list_mods()) == 1


@pytest.mark.parametrize("slug, display, summary", [
    ("", "Name", "Summary"),
    ("slug", "", "Summary"),
    ("slug", "Name", ""),
    ("slug", "Name", "   "),
])
def test_upsert_mod_validates_required_fields(db, slug, display, summary):
    with pytest.raises(ValidationError):
        db.upsert_mod(slug, display, summary)
    assert db.list_mods() == []


def test_get_mod_by_id_slug_and_digit_string(db):
    mod = db.upsert_mod("cool-mod", "Cool Mod", "Summary")

    assert db.get_mod(mod.id).name_slug == "cool-mod"
    assert db.get_mod("cool-mod").id == mod.id
    assert db.get_mod(str(mod.id)).id == mod.id
    assert db.get_mod("missing") is None
    assert db.get_mod(9999) is None


def test_numeric_slug_falls_back_to_slug_lookup(db):
    mod = db.upsert_mod("1984", "1984", "A mod named after a year")

    assert db.get_mod("1984").id == mod.id


def test_insert_mod_file_is_idempotent(db):
    mod = db.upsert_mod("m", "M", "S")

    first = db.insert_mod_file(mod.id, "abc", "m.zip", "1.0", None, entries("a.txt"))
    second = db.insert_mod_file(mod.id, "abc", "other.zip", "2.0", "log", entries("b.txt"))

    assert first.status == CREATED
    assert second.status == ALREADY_EXISTS
    assert second.mod_file_id == first.mod_file_id
    assert second.mod_file.filename == "m.zip"
    assert [p.path for p in db.list_pack_files(first.mod_file_id)] == ["a.txt"]


def test_insert_mod_file_unknown_mod(db):
    with pytest.raises(NotFoundError):
        db.insert_mod_file(42, "abc", "m.zip", None, None, [])
    assert db.get_stats()["mod_files"] == 0


def test_insert_mod_file_rejects_duplicate_paths(db):
    mod = db.upsert_mod("m", "M", "S")

    with pytest.raises(DuplicatePathError):
        db.insert_mod_file(mod.id, "abc", "m.zip", None, None, entries("a.txt", "a.txt"))

    assert db.list_mod_files(mod.id) == []
    assert db.get_mod(mod.id).current_file_id is None


def test_pack_files_are_ordered_by_code_point(db):
    mod = db.upsert_mod("m", "M", "S")
    result = db.insert_mod_file(mod.id, "abc", "m.zip", None, None,
                                entries("b.txt", "a.txt", "_x", "B.txt", "a/z.txt"))

    paths = [p.path for p in db.list_pack_files(result.mod_file_id)]
    assert paths == ["B.txt", "_x", "a.txt", "a/z.txt", "b.txt"]


def test_pack_file_paths_are_distinct_per_release_only(db):
    mod = db.upsert_mod("m", "M", "S")
    one = db.insert_mod_file(mod.id, "h1", "1.zip", None, None, entries("a.txt"))
    two = db.insert_mod_file(mod.id, "h2", "2.zip", None, None, entries("a.txt"))

    assert one.created and two.created
    assert db.get_stats()["pack_files"] == 2


def test_current_file_follows_date_added(db):
    mod = db.upsert_mod("m", "M", "S")
    newer = db.insert_mod_file(mod.id, "h1", "new.zip", None, None, [],
                               date_added=datetime(2024, 5, 1))
    db.insert_mod_file(mod.id, "h2", "old.zip", None, None, [],
                       date_added=datetime(2023, 5, 1))

    assert db.get_mod(mod.id).current_file_id == newer.mod_file_id


def test_current_file_tie_breaks_on_highest_id(db):
    mod = db.upsert_mod("m", "M", "S")
    same = datetime(2024, 1, 1)
    db.insert_mod_file(mod.id, "h1", "1.zip", None, None, [], date_added=same)
    second = db.insert_mod_file(mod.id, "h2", "2.zip", None, None, [], date_added=same)

    assert db.get_mod(mod.id).current_file_id == second.mod_file_id


def test_list_mod_files_oldest_first(db):
    mod = db.upsert_mod("m", "M", "S")
    db.insert_mod_file(mod.id, "h1", "b.zip", None, None, [], date_added=datetime(2024, 2, 1))
    db.insert_mod_file(mod.id, "h2", "a.zip", None, None, [], date_added=datetime(2024, 1, 1))

    assert [f.filename for f in db.list_mod_files(mod.id)] == ["a.zip", "b.zip"]


def test_delete_mod_cascades(db):
    keep = db.upsert_mod("keep", "Keep", "S")
    kept = db.insert_mod_file(keep.id, "k", "keep.zip", None, None, entries("k.txt"))

    gone = db.upsert_mod("gone", "Gone", "S")
    first = db.insert_mod_file(gone.id, "g1", "g1.zip", None, None, entries("a.cfg", "b.txt"))
    second = db.insert_mod_file(gone.id, "g2", "g2.zip", None, None, entries("c.cfg"))

    assert db.delete_mod(gone.id) == 2

    assert db.get_mod(gone.id) is None
    assert db.get_mod_file(first.mod_file_id) is None
    assert db.get_mod_file(second.mod_file_id) is None
    assert db.list_pack_files(first.mod_file_id) == []
    assert [p.path for p in db.find_by_extension("cfg")] == []

    survivor = db.get_mod(keep.id)
    assert survivor.current_file_id == kept.mod_file_id
    assert db.get_stats() == {"mods": 1, "mod_files": 1, "pack_files": 1}


def test_delete_mod_without_cascade_refuses_when_files_exist(db):
    mod = db.upsert_mod("m", "M", "S")
    db.insert_mod_file(mod.id, "h", "m.zip", None, None, entries("a.txt"))

    with pytest.raises(NotEmptyError) as excinfo:
        db.delete_mod(mod.id, cascade=False)

    assert excinfo.value.file_count == 1
    assert db.get_mod(mod.id) is not None
    assert db.get_stats()["pack_files"] == 1


def test_delete_empty_mod_without_cascade(db):
    mod = db.upsert_mod("m", "M", "S")

    assert db.delete_mod(mod.id, cascade=False) == 0
    assert db.get_mod(mod.id) is None


def test_delete_unknown_mod(db):
    with pytest.raises(NotFoundError):
        db.delete_mod(123)


def test_slug_is_reusable_after_delete(db):
    mod = db.upsert_mod("m", "M", "S")
    db.delete_mod(mod.id)

    again = db.upsert_mod("m", "M", "S")
    assert again.name_slug == "m"


def test_find_by_extension_is_lazy_and_case_insensitive(db):
    mod = db.upsert_mod("m", "M", "S")
    one = db.insert_mod_file(mod.id, "h1", "1.zip", None, None,
                             entries("game.cfg", "UPPER.CFG", "readme.txt"))
    two = db.insert_mod_file(mod.id, "h2", "2.zip", None, None, entries("x/other.cfg"))

    found = db.find_by_extension(".cfg")
    assert isinstance(found, types.GeneratorType)

    pairs = [(p.mod_file_id, p.path) for p in found]
    assert pairs == [
        (one.mod_file_id, "UPPER.CFG"),
        (one.mod_file_id, "game.cfg"),
        (two.mod_file_id, "x/other.cfg"),
    ]
    assert [p.path for p in db.find_by_extension("TXT")] == ["readme.txt"]
    assert list(db.find_by_extension("png")) == []


def test_find_mod_files_by_hash(db):
    a = db.upsert_mod("a", "A", "S")
    b = db.upsert_mod("b", "B", "S")
    db.insert_mod_file(a.id, "same", "a.zip", None, None, [])
    db.insert_mod_file(b.id, "same", "b.zip", None, None, [])
    db.insert_mod_file(b.id, "other", "c.zip", None, None, [])

    assert [f.filename for f in db.find_mod_files_by_hash("same")] == ["a.zip", "b.zip"]
    assert db.find_mod_file(a.id, "other") is None


def test_conflicts_are_retried(db, monkeypatch):
    calls = {"count": 0}
    original = Database._get_or_create_mod

    def flaky(session, *args):
        calls["count"] += 1
        if calls["count"] == 1:
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: mod.name_slug"))
        return original(session, *args)

    monkeypatch.setattr(Database, "_get_or_create_mod", staticmethod(flaky))

    mod = db.upsert_mod("m", "M", "S")
    assert mod.name_slug == "m"
    assert calls["count"] == 2


def test_conflict_error_after_bounded_retries(tmp_path, monkeypatch):
    db = Database(str(tmp_path / "c.db"), max_retries=3)
    calls = {"count": 0}

    def always_loses(session, *args):
        calls["count"] += 1
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: mod.name_slug"))

    monkeypatch.setattr(Database, "_get_or_create_mod", staticmethod(always_loses))

    with pytest.raises(ConflictError) as excinfo:
        db.upsert_mod("m", "M", "S")

    assert excinfo.value.attempts == 3
    assert calls["count"] == 3
    db.close()


def test_non_retryable_storage_errors_are_wrapped(db, monkeypatch):
    def broken(session, *args):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(Database, "_get_or_create_mod", staticmethod(broken))

    with pytest.raises(StorageFailedError) as excinfo:
        db.upsert_mod("m", "M", "S")
    assert excinfo.value.operation == "upsert_mod"


def test_database_file_is_created_with_parent_directory(tmp_path):
    path = tmp_path / "nested" / "dir" / "catalog.db"
    database = Database(str(path))

    assert path.exists()
    assert database.get_stats() == {"mods": 0, "mod_files": 0, "pack_files": 0}
    database.close()


def test_catalog_survives_reopen(tmp_path):
    path = str(tmp_path / "catalog.db")
    first = Database(path)
    mod = first.upsert_mod("m", "M", "S")
    first.insert_mod_file(mod.id, "h", "m.zip", None, None, entries("a.txt"))
    first.close()

    second = Database(path)
    assert second.get_mod("m").current_file_id is not None
    assert second.get_stats()["pack_files"] == 1
    second.close()


def test_get_mod_by_slug_never_reads_digits_as_an_id(db):
    first = db.upsert_mod("cool-mod", "Cool Mod", "S")

    assert db.get_mod_by_slug(str(first.id)) is None
    numeric = db.upsert_mod(str(first.id), "One", "S")
    assert db.get_mod_by_slug(str(first.id)).id == numeric.id


def test_aware_dates_are_compared_in_utc(db):
    mod = db.upsert_mod("m", "M", "S")
    # 10:00 UTC
    later = db.insert_mod_file(mod.id, "h1", "a.zip", None, None, [],
                               date_added=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
    # 12:00+05:00 is 07:00 UTC
    plus_five = timezone(timedelta(hours=5))
    db.insert_mod_file(mod.id, "h2", "b.zip", None, None, [],
                       date_added=datetime(2024, 1, 1, 12, 0, tzinfo=plus_five))

    assert db.get_mod(mod.id).current_file_id == later.mod_file_id
    stored = db.get_mod_file(later.mod_file_id).date_added
    assert stored == datetime(2024, 1, 1, 10, 0)


def test_default_date_added_is_utc_now(db):
    mod = db.upsert_mod("m", "M", "S")
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    result = db.insert_mod_file(mod.id, "h", "a.zip", None, None, [])
    after = datetime.now(timezone.utc).replace(tzinfo=None)

    assert before <= db.get_mod_file(result.mod_file_id).date_added <= after


def test_foreign_keys_are_checked_at_commit(db):
    def children_first(session):
        session.execute(text(
            "INSERT INTO pack_file (path, mod_file_id, path_no_extension, name, extension) "
            "VALUES ('a.txt', 7, 'a', 'a.txt', 'txt')"
        ))
        session.execute(text(
            "INSERT INTO modfile (id, mod_id, date_added, content_hash, filename) "
            "VALUES (7, 3, '2024-01-01 00:00:00', 'h', 'a.zip')"
        ))
        session.execute(text(
            "INSERT INTO mod (id, name_display, name_slug, summary) "
            "VALUES (3, 'M', 'm', 'S')"
        ))

    db._write("children_first", children_first)

    assert [p.path for p in db.list_pack_files(7)] == ["a.txt"]
    assert db.get_mod_file(7).mod_id == 3


@pytest.mark.parametrize("statement", [
    "INSERT INTO pack_file (path, mod_file_id, path_no_extension, name) "
    "VALUES ('a.txt', 99, 'a', 'a.txt')",
    "INSERT INTO modfile (mod_id, date_added, content_hash, filename) "
    "VALUES (99, '2024-01-01 00:00:00', 'h', 'a.zip')",
])
def test_dangling_reference_fails_at_commit(db, statement):
    def dangling(session):
        session.execute(text(statement))

    with pytest.raises(StorageFailedError):
        db._write("dangling", dangling)

    assert db.get_stats() == {"mods": 0, "mod_files": 0, "pack_files": 0}


def test_extension_lookup_uses_the_expression_index(db):
    with db.engine.connect() as connection:
        plan = connection.execute(text(
            "EXPLAIN QUERY PLAN SELECT path FROM pack_file WHERE lower(extension) = 'cfg'"
        )).fetchall()

    assert "ix_pack_file_extension_lower" in " ".join(str(row) for row in plan)
