"""Module identifying a forge-hosted repository."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

_SCHEME_RE = re.compile(r"^(?:https|git)://")


def normalize_identifier(identifier: str) -> str:
    """Prefix `https://` unless the identifier already uses https:// or git://."""
    if _SCHEME_RE.match(identifier):
        return identifier
    return f"https://{identifier}"


@dataclass(frozen=True, kw_only=True)
class RemoteRepository:
    """
    Repository hosted on a source-code forge.

    Attributes:
        host: the forge hostname (e.g., `github.com`)
        owner: the user or organization owning the repository
        name: the repository name
    """

    host: str
    owner: str
    name: str

    @classmethod
    def parse(cls, identifier: str) -> RemoteRepository:
        """
        Parse a `host/owner/name` identifier, optionally prefixed
        by the `https://` or `git://` scheme.

        Raises:
            ValueError: if the identifier has no host or does not
                contain exactly the owner and name path components.
        """
        parts = urlsplit(normalize_identifier(identifier.strip()))
        if not parts.hostname:
            raise ValueError(f"missing host in repository identifier: {identifier}")
        path = parts.path.strip("/").removesuffix(".git")
        components = path.split("/")
        if len(components) != 2 or not all(components):
            raise ValueError(f"expected host/owner/name, got: {identifier}")
        return cls(host=parts.hostname, owner=components[0], name=components[1])

    def __str__(self) -> str:
        return f"{self.host}/{self.owner}/{self.name}"

    @property
    def path(self) -> str:
        """Path of the repository on the git daemon."""
        return f"/{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        """HTTPS URL of the repository."""
        return f"https://{self.host}{self.path}"

    def archive_url_template(self) -> str:
        """Return the URL of the tag archives with a `{version}` placeholder."""
        return f"{self.url}/archive/v{{version}}.zip"
