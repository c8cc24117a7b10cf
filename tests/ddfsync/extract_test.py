"""Tests for the ddfsync.extract module."""

import os
import sys

import pytest

from ddfsync.errors import ExtractionError, UnexpectedLayoutError
from ddfsync.extract import (
    DEFAULT_EXTRACTOR,
    DefaultZipExtractor,
    SymlinkZipExtractor,
    select_extractor,
    single_top_level_dir,
)

posix_only = pytest.mark.skipif(sys.platform.startswith("win32"), reason="requires POSIX symlinks")


@pytest.mark.parametrize("extractor", [DefaultZipExtractor(), SymlinkZipExtractor()])
class TestExtractors:
    """Tests shared by both the extraction strategies."""

    def test_single_top_level_entry(self, tmp_path, make_zip, extractor):
        archive = make_zip(
            {
                "dataset-v1.2.0/": None,
                "dataset-v1.2.0/ddf--index.csv": b"key,value\n",
                "dataset-v1.2.0/ddf--entities/geo.csv": b"geo\nswe\n",
            }
        )
        target = tmp_path / "temp" / "unpacked"

        result = extractor.extract(archive, target)

        assert result == target.resolve()
        assert result.is_absolute()
        assert sorted(os.listdir(target)) == ["dataset-v1.2.0"]
        content = target / "dataset-v1.2.0"
        assert (content / "ddf--index.csv").read_bytes() == b"key,value\n"
        assert (content / "ddf--entities" / "geo.csv").read_bytes() == b"geo\nswe\n"

    def test_corrupt_archive(self, tmp_path, extractor):
        archive = tmp_path / "dl.zip"
        archive.write_bytes(b"this is not a zip file")
        with pytest.raises(ExtractionError, match="cannot unpack"):
            extractor.extract(archive, tmp_path / "unpacked")

    def test_missing_archive(self, tmp_path, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract(tmp_path / "missing.zip", tmp_path / "unpacked")

    def test_path_traversal(self, tmp_path, make_zip, extractor):
        archive = make_zip({"pkg/": None, "../evil.txt": b"owned"})
        with pytest.raises(ExtractionError, match="unsafe archive member"):
            extractor.extract(archive, tmp_path / "unpacked")
        assert not (tmp_path / "evil.txt").exists()


@posix_only
class TestSymlinkZipExtractor:
    """Tests for the SymlinkZipExtractor class."""

    def test_restores_symlinks(self, tmp_path, make_zip):
        archive = make_zip(
            {"pkg/": None, "pkg/data.csv": b"a,b\n"},
            symlinks={"pkg/latest.csv": "data.csv"},
        )
        target = SymlinkZipExtractor().extract(archive, tmp_path / "unpacked")
        link = target / "pkg" / "latest.csv"
        assert link.is_symlink()
        assert os.readlink(link) == "data.csv"
        assert link.read_bytes() == b"a,b\n"

    def test_restores_permissions(self, tmp_path, make_zip):
        archive = make_zip({"pkg/run.sh": b"#!/bin/sh\n"}, modes={"pkg/run.sh": 0o755})
        target = SymlinkZipExtractor().extract(archive, tmp_path / "unpacked")
        assert os.stat(target / "pkg" / "run.sh").st_mode & 0o777 == 0o755

    def test_rejects_escaping_symlink(self, tmp_path, make_zip):
        archive = make_zip({"pkg/": None}, symlinks={"pkg/passwd": "../../../etc/passwd"})
        with pytest.raises(ExtractionError, match="unsafe symlink"):
            SymlinkZipExtractor().extract(archive, tmp_path / "unpacked")

    def test_rejects_absolute_symlink(self, tmp_path, make_zip):
        archive = make_zip({"pkg/": None}, symlinks={"pkg/passwd": "/etc/passwd"})
        with pytest.raises(ExtractionError, match="unsafe symlink"):
            SymlinkZipExtractor().extract(archive, tmp_path / "unpacked")


class TestDefaultZipExtractor:
    """Tests for the DefaultZipExtractor class."""

    def test_symlinks_become_regular_files(self, tmp_path, make_zip):
        archive = make_zip({"pkg/": None}, symlinks={"pkg/latest.csv": "data.csv"})
        target = DefaultZipExtractor().extract(archive, tmp_path / "unpacked")
        link = target / "pkg" / "latest.csv"
        assert not link.is_symlink()
        assert link.read_bytes() == b"data.csv"


class TestSelectExtractor:
    """Tests for the select_extractor function."""

    def test_windows(self):
        assert type(select_extractor("win32")) is DefaultZipExtractor

    @pytest.mark.parametrize("platform", ["linux", "darwin", "freebsd14"])
    def test_posix(self, platform):
        assert type(select_extractor(platform)) is SymlinkZipExtractor

    def test_default_matches_running_platform(self):
        assert type(DEFAULT_EXTRACTOR) is type(select_extractor(sys.platform))


class TestSingleTopLevelDir:
    """Tests for the single_top_level_dir function."""

    def test_one_directory(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        assert single_top_level_dir(tmp_path) == (tmp_path / "pkg").resolve()

    def test_no_entries(self, tmp_path):
        with pytest.raises(UnexpectedLayoutError, match="found 0"):
            single_top_level_dir(tmp_path)

    def test_too_many_entries(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        with pytest.raises(UnexpectedLayoutError, match="found 2"):
            single_top_level_dir(tmp_path)

    def test_single_file(self, tmp_path):
        (tmp_path / "README.md").write_text("hello")
        with pytest.raises(UnexpectedLayoutError, match="not a directory"):
            single_top_level_dir(tmp_path)
