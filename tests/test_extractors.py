"""Tests for the release-archive extractors."""

import pytest

from modcatalog.extractors import (
    ExtractorRegistry, TarExtractor, ZipExtractor, get_extractor, normalize_entry_path,
)

from archives import make_tar, make_zip


def test_zip_is_detected_by_content_not_name():
    data = make_zip(["a.txt"])

    extractor = get_extractor(data, "misnamed.tar")
    assert isinstance(extractor, ZipExtractor)


def test_tar_is_detected():
    data = make_tar(["a.txt"], compression="bz2")

    assert isinstance(get_extractor(data, "mod.tar.bz2"), TarExtractor)
    assert isinstance(get_extractor(data), TarExtractor)


@pytest.mark.parametrize("data", [b"", b"not an archive", b"PK\x03\x04garbage"])
def test_unrecognized_data(data):
    assert get_extractor(data, "mod.zip") is None


def test_zip_skips_directories():
    data = make_zip(["folder/", "folder/a.txt", "b.txt"], contents=[b"", b"a", b"b"])

    paths = [entry.path for entry in ZipExtractor().list_entries(data)]
    assert paths == ["folder/a.txt", "b.txt"]


def test_entry_sizes():
    data = make_zip(["a.txt", "b/c.txt"], contents=[b"hello", b""])

    entries = ZipExtractor().list_entries(data)
    assert [(e.path, e.size) for e in entries] == [("a.txt", 5), ("b/c.txt", 0)]


def test_tar_lists_regular_files_only():
    entries = TarExtractor().list_entries(make_tar(["x/y.cfg"]))

    assert [(e.path, e.size) for e in entries] == [("x/y.cfg", len(b"content of x/y.cfg"))]


def test_strip_prefix():
    data = make_zip(["../../../FSD/Content/a.uasset", "../../../FSD/b.ini"])

    extractor = ZipExtractor(strip_prefix="../../../")
    assert [e.path for e in extractor.list_entries(data)] == ["FSD/Content/a.uasset", "FSD/b.ini"]


@pytest.mark.parametrize("raw, prefix, expected", [
    ("a\\b\\c.txt", None, "a/b/c.txt"),
    ("./a.txt", None, "a.txt"),
    ("/abs/a.txt", None, "abs/a.txt"),
    ("mnt/a.txt", "mnt/", "a.txt"),
    ("other/a.txt", "mnt/", "other/a.txt"),
])
def test_normalize_entry_path(raw, prefix, expected):
    assert normalize_entry_path(raw, prefix) == expected


def test_registry():
    extensions = ExtractorRegistry.list_supported_extensions()
    assert ".zip" in extensions and ".tgz" in extensions
    assert extensions == sorted(extensions)


def test_register_requires_id():
    class Nameless(ZipExtractor):
        extractor_id = ""

    with pytest.raises(ValueError):
        ExtractorRegistry.register(Nameless)
