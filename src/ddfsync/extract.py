"""Module expanding downloaded archives into a staging directory."""

from __future__ import annotations

import logging
import os
import stat
import sys
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Final, Protocol

from .errors import ExtractionError, UnexpectedLayoutError

log = logging.getLogger("extract")


class Extractor(Protocol):
    """
    Represent a strategy for expanding an archive.

    Methods:
        extract: expand the archive into the target directory and
            return its absolute path, raising ExtractionError on failure.
    """

    def extract(self, archive: Path, target: Path) -> Path: ...


class DefaultZipExtractor:
    """Extract zip archives ignoring symbolic links and permissions."""

    def extract(self, archive: Path, target: Path) -> Path:
        archive = Path(archive)
        target = Path(target).resolve()
        log.info("unpacking %s... start", archive)
        try:
            with zipfile.ZipFile(archive) as zfile:
                members = zfile.infolist()
                for info in members:
                    _check_member_name(info.filename)
                target.mkdir(parents=True, exist_ok=True)
                self._extract_members(zfile, members, target)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, OSError) as exc:
            raise ExtractionError(f"cannot unpack {archive}: {exc}") from exc
        log.info("unpacking %s... ok", archive)
        return target

    def _extract_members(
        self,
        zfile: zipfile.ZipFile,
        members: list[zipfile.ZipInfo],
        target: Path,
    ) -> None:
        zfile.extractall(target, members=members)


class SymlinkZipExtractor(DefaultZipExtractor):
    """
    Extract zip archives recreating the symbolic links and the Unix
    permission bits stored in the external attributes of each member.
    """

    def _extract_members(
        self,
        zfile: zipfile.ZipFile,
        members: list[zipfile.ZipInfo],
        target: Path,
    ) -> None:
        for info in members:
            mode = info.external_attr >> 16
            if stat.S_ISLNK(mode):
                self._extract_symlink(zfile, info, target)
                continue
            extracted = zfile.extract(info, target)
            if not info.is_dir() and stat.S_IMODE(mode):
                os.chmod(extracted, stat.S_IMODE(mode))

    def _extract_symlink(self, zfile: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path):
        link = target / info.filename.rstrip("/")
        link_target = zfile.read(info).decode("utf-8")
        resolved = os.path.normpath(os.path.join(link.parent, link_target))
        if os.path.isabs(link_target) or not _is_within(Path(resolved), target):
            raise ExtractionError(f"unsafe symlink {info.filename} -> {link_target}")
        link.parent.mkdir(parents=True, exist_ok=True)
        if link.is_symlink() or link.exists():
            link.unlink()
        os.symlink(link_target, link)


def _check_member_name(name: str) -> None:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts or (path.parts and ":" in path.parts[0]):
        raise ExtractionError(f"unsafe archive member: {name}")


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def select_extractor(platform: str = sys.platform) -> Extractor:
    """Return the extractor suitable for the given platform."""
    if platform.startswith("win32"):
        return DefaultZipExtractor()
    return SymlinkZipExtractor()


DEFAULT_EXTRACTOR: Final[Extractor] = select_extractor()
"""Extractor selected for the running platform."""


def single_top_level_dir(base_dir: Path) -> Path:
    """
    Return the only entry inside base_dir.

    Raises:
        UnexpectedLayoutError: unless base_dir contains exactly one
            entry and such entry is a directory.
    """
    entries = sorted(Path(base_dir).iterdir())
    if len(entries) != 1:
        raise UnexpectedLayoutError(
            f"expected exactly one top-level entry in {base_dir}, found {len(entries)}"
        )
    entry = entries[0].resolve()
    if not entry.is_dir():
        raise UnexpectedLayoutError(f"top-level entry is not a directory: {entry}")
    return entry
