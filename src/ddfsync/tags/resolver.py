"""Module resolving the latest semantic-version tag of a remote repository."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import requests
from packaging.version import InvalidVersion, Version

from ..errors import NoTagsFoundError, ProtocolError, TagDiscoveryError
from .pktline import iter_pkt_lines
from .repository import RemoteRepository
from .transport import GitProtocolTransport, RefTransport

_TAG_REF_RE = re.compile(r"^refs/tags/(.+)$")
_PEELED_SUFFIX = "^{}"

log = logging.getLogger("tags/resolver")


@dataclass(frozen=True, kw_only=True)
class Ref:
    """Single record of a ref advertisement."""

    object_id: str
    name: str


def iter_refs(pkt_lines: Iterable[bytes | None]) -> Iterator[Ref]:
    """
    Parse the refs contained in a ref advertisement.

    Refs are yielded as soon as their packet arrives. The advertisement
    ends at the first flush packet following the refs. The smart HTTP
    `# service=` banner (and its flush) is skipped, as are capabilities
    and the placeholder ref advertised by empty repositories.

    Raises:
        ProtocolError: if a record is malformed, the remote speaks
            protocol v2, or the stream closes before the final flush.
    """
    in_banner = False
    for line in pkt_lines:
        if line is None:
            if in_banner:
                in_banner = False
                continue
            return
        if line.startswith(b"# service="):
            in_banner = True
            continue
        if line.startswith(b"version 2"):
            raise ProtocolError("remote only speaks protocol v2")
        if line.startswith(b"version 1"):
            continue
        record = line.rstrip(b"\n").partition(b"\0")[0]
        try:
            object_id, name = record.decode("utf-8").split(" ", 1)
        except (UnicodeDecodeError, ValueError) as exc:
            raise ProtocolError(f"malformed ref record: {line!r}") from exc
        if name == "capabilities^{}":
            continue
        yield Ref(object_id=object_id, name=name)
    raise ProtocolError("ref advertisement ended without flush-pkt")


def tag_name_from_ref(name: str) -> str | None:
    """
    Return the version carried by a `refs/tags/...` ref or None otherwise.

    The peeled marker (`^{}`) and a single leading `v` are removed.
    """
    match = _TAG_REF_RE.match(name)
    if match is None:
        return None
    return match.group(1).removesuffix(_PEELED_SUFFIX).removeprefix("v")


def select_latest(tags: Iterable[str]) -> str:
    """
    Return the tag with the highest version.

    Ordering follows PEP 440 (packaging.version), not SemVer: tags such
    as `1.2` or `1.0.post1` are accepted, while SemVer prereleases that
    PEP 440 cannot parse (e.g. `1.0.0-alpha.beta`) are ignored along with
    any other tag that is not a valid version.

    Raises:
        NoTagsFoundError: if there are no valid tags.
    """
    candidates: list[tuple[Version, str]] = []
    for tag in tags:
        try:
            candidates.append((Version(tag), tag))
        except InvalidVersion:
            log.debug("ignoring non-version tag: %s", tag)
    if not candidates:
        raise NoTagsFoundError("Tags are missing")
    candidates.sort(key=lambda candidate: candidate[0], reverse=True)
    return candidates[0][1]


class TagResolver:
    """Discover the tags of a repository without cloning it."""

    def __init__(self, transport: RefTransport | None = None) -> None:
        self.transport = transport if transport is not None else GitProtocolTransport()

    def list_tags(self, repo: RemoteRepository) -> list[str]:
        """
        Return the versions of all the tags advertised by the repository,
        in the order in which the remote advertises them.

        Raises:
            TagDiscoveryError: on connection or protocol failures.
        """
        tags: list[str] = []
        try:
            with self.transport.open(repo) as chunks:
                for ref in iter_refs(iter_pkt_lines(chunks)):
                    tag = tag_name_from_ref(ref.name)
                    if tag is not None:
                        tags.append(tag)
        except (OSError, requests.RequestException) as exc:
            raise TagDiscoveryError(f"cannot list refs of {repo}: {exc}") from exc
        return tags

    def resolve(self, identifier: str | RemoteRepository) -> str:
        """
        Return the latest version tag of the given repository.

        Raises:
            TagDiscoveryError: on connection or protocol failures.
            NoTagsFoundError: if the repository has no version tags.
        """
        repo = identifier
        if not isinstance(repo, RemoteRepository):
            repo = RemoteRepository.parse(repo)
        log.info("resolving latest tag of %s... start", repo)
        version = select_latest(self.list_tags(repo))
        log.info("resolving latest tag of %s... ok: %s", repo, version)
        return version


def resolve_latest_tag(
    identifier: str | RemoteRepository,
    *,
    transport: RefTransport | None = None,
) -> str:
    """Convenience function returning the latest version tag of a repository."""
    return TagResolver(transport).resolve(identifier)
