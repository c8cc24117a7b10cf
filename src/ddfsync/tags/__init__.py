"""
Discover the latest version tag of a remote repository without cloning it.

We read the ref advertisement that a git server sends to a connecting
client before any object transfer occurs:

    <len><oid> refs/tags/v1.2.0\0multi_ack thin-pack ...
    <len><oid> refs/tags/v1.2.0^{}
    0000

The advertisement is consumed incrementally. Tags of the form
`refs/tags/v<version>[^{}]` are normalized to `<version>` and the highest
one according to `packaging.version` wins.

Two transports are available: `GitProtocolTransport` speaks git:// on
TCP port 9418, while `SmartHTTPTransport` uses the smart HTTP endpoint for
forges that no longer run a git daemon.
"""

from .repository import RemoteRepository, normalize_identifier
from .resolver import (
    Ref,
    TagResolver,
    iter_refs,
    resolve_latest_tag,
    select_latest,
    tag_name_from_ref,
)
from .transport import (
    GIT_DAEMON_PORT,
    GitProtocolTransport,
    RefTransport,
    SmartHTTPTransport,
    make_transport,
)

__all__ = [
    "GIT_DAEMON_PORT",
    "GitProtocolTransport",
    "Ref",
    "RefTransport",
    "RemoteRepository",
    "SmartHTTPTransport",
    "TagResolver",
    "iter_refs",
    "make_transport",
    "normalize_identifier",
    "resolve_latest_tag",
    "select_latest",
    "tag_name_from_ref",
]
