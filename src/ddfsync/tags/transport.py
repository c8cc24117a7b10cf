"""Transports delivering the raw ref advertisement of a repository."""

from __future__ import annotations

import logging
import socket
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Final, Protocol

import requests

from .pktline import FLUSH_PKT, encode_pkt_line
from .repository import RemoteRepository

GIT_DAEMON_PORT: Final[int] = 9418
"""Port of the unauthenticated git protocol."""

_RECV_SIZE: Final[int] = 65536

log = logging.getLogger("tags/transport")


class RefTransport(Protocol):
    """
    Represent a way of reaching the ref advertisement of a repository.

    Methods:
        open: connect to the repository and return a context manager
            yielding the advertisement as a stream of byte chunks. The
            connection is closed when the context manager exits.
    """

    def open(self, repo: RemoteRepository) -> AbstractContextManager[Iterator[bytes]]: ...


class GitProtocolTransport:
    """Speak the git:// protocol with a git daemon over TCP."""

    def __init__(
        self,
        *,
        port: int = GIT_DAEMON_PORT,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
    ) -> None:
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @contextmanager
    def open(self, repo: RemoteRepository) -> Iterator[Iterator[bytes]]:
        log.debug("connecting to %s:%d... start", repo.host, self.port)
        sock = socket.create_connection((repo.host, self.port), timeout=self.connect_timeout)
        log.debug("connecting to %s:%d... ok", repo.host, self.port)
        with sock:
            sock.settimeout(self.read_timeout)
            request = f"git-upload-pack {repo.path}\0host={repo.host}\0".encode()
            sock.sendall(encode_pkt_line(request))
            yield _recv_chunks(sock)
            # Tell the daemon we do not want any object so it closes cleanly.
            try:
                sock.sendall(FLUSH_PKT)
            except OSError as exc:
                log.debug("sending flush-pkt to %s... failure: %s", repo.host, exc)


def _recv_chunks(sock: socket.socket) -> Iterator[bytes]:
    while True:
        data = sock.recv(_RECV_SIZE)
        if not data:
            return
        yield data


class SmartHTTPTransport:
    """Fetch the ref advertisement using the git smart HTTP protocol."""

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @contextmanager
    def open(self, repo: RemoteRepository) -> Iterator[Iterator[bytes]]:
        url = f"{repo.url}.git/info/refs"
        log.debug("requesting %s... start", url)
        resp = self.session.get(
            url,
            params={"service": "git-upload-pack"},
            headers={"User-Agent": "git/2.0 (ddfsync)"},
            stream=True,
            timeout=(self.connect_timeout, self.read_timeout),
        )
        with resp:
            resp.raise_for_status()
            log.debug("requesting %s... ok", url)
            yield resp.iter_content(chunk_size=8192)


def make_transport(name: str, *, connect_timeout: float = 30.0) -> RefTransport:
    """Return the transport registered under the given name (`git` or `http`)."""
    if name == "git":
        return GitProtocolTransport(connect_timeout=connect_timeout)
    if name == "http":
        return SmartHTTPTransport(connect_timeout=connect_timeout)
    raise ValueError(f"Unsupported transport: {name}")
