"""Shared pytest fixtures for ddfsync tests."""

from __future__ import annotations

import socketserver
import stat
import threading
import time
import zipfile
from collections.abc import Callable, Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest


def _pkt(payload: bytes) -> bytes:
    return f"{len(payload) + 4:04x}".encode("ascii") + payload


def _advertisement(refs: list[str]) -> bytes:
    lines = []
    for index, name in enumerate(refs):
        record = f"{index:040x} {name}".encode()
        if index == 0:
            record += b"\0multi_ack thin-pack side-band ofs-delta"
        lines.append(_pkt(record + b"\n"))
    return b"".join(lines) + b"0000"


@pytest.fixture
def pkt() -> Callable[[bytes], bytes]:
    """Return a function framing a payload as a pkt-line."""
    return _pkt


@pytest.fixture
def ref_advertisement() -> Callable[[list[str]], bytes]:
    """Return a function building a git ref advertisement for the given ref names."""
    return _advertisement


class _GitDaemonHandler(socketserver.BaseRequestHandler):
    def handle(self):
        server: FakeGitDaemon = self.server  # type: ignore[assignment]
        server.received.append(self.request.recv(65536))
        self.request.sendall(server.payload)
        if server.payload.endswith(b"0000"):
            # Wait for the client flush-pkt (or for it to hang up).
            server.received.append(self.request.recv(65536))


class FakeGitDaemon(socketserver.ThreadingTCPServer):
    """Serve a canned ref advertisement like `git daemon` would."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, payload: bytes) -> None:
        super().__init__(("127.0.0.1", 0), _GitDaemonHandler)
        self.payload = payload
        self.received: list[bytes] = []

    @property
    def port(self) -> int:
        return self.server_address[1]


@pytest.fixture
def git_daemon() -> Iterator[Callable[[bytes], FakeGitDaemon]]:
    """Return a factory starting a FakeGitDaemon serving the given payload."""
    servers: list[FakeGitDaemon] = []

    def start(payload: bytes) -> FakeGitDaemon:
        server = FakeGitDaemon(payload)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    """
    Return a function writing a zip archive with the given members.

    Members map names to bytes (files) or None (directories). Symlinks
    map link names to their target.
    """

    def build(
        members: dict[str, bytes | None],
        *,
        symlinks: dict[str, str] | None = None,
        modes: dict[str, int] | None = None,
        name: str = "archive.zip",
    ) -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zfile:
            for member, content in members.items():
                if content is None:
                    zfile.writestr(member.rstrip("/") + "/", b"")
                    continue
                info = zipfile.ZipInfo(member)
                info.external_attr = (stat.S_IFREG | (modes or {}).get(member, 0o644)) << 16
                zfile.writestr(info, content)
            for link, target in (symlinks or {}).items():
                info = zipfile.ZipInfo(link)
                info.create_system = 3
                info.external_attr = (stat.S_IFLNK | 0o777) << 16
                zfile.writestr(info, target)
        return path

    return build


class _FakeRaw:
    """Minimal stand-in for the urllib3 response under a requests.Response."""

    connection = None

    def __init__(self, items: Iterator[bytes]) -> None:
        self._items = items

    def read1(self, amt: int = -1, decode_content: bool | None = None) -> bytes:
        return next(self._items, b"")


class FakeResponse:
    """Minimal stand-in for a streaming requests.Response."""

    def __init__(
        self,
        chunks: list[bytes | float],
        *,
        status_error: Exception | None = None,
        stream_error: Exception | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.chunks = chunks
        self.status_error = status_error
        self.stream_error = stream_error
        self.headers = headers if headers is not None else {}
        self.closed = False
        self.raw = _FakeRaw(self._iter_chunks())

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
        return False

    def raise_for_status(self) -> None:
        if self.status_error is not None:
            raise self.status_error

    def _iter_chunks(self) -> Iterator[bytes]:
        # Floats are pauses, in seconds, between chunks.
        for item in self.chunks:
            if isinstance(item, float):
                time.sleep(item)
                continue
            yield item
        if self.stream_error is not None:
            raise self.stream_error

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    """Return the FakeResponse class."""
    return FakeResponse


class _QuietHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass


@pytest.fixture
def http_server() -> Iterator[Callable[[Callable[[BaseHTTPRequestHandler], None]], str]]:
    """
    Return a factory serving GET requests on localhost.

    The factory takes a function receiving the request handler and
    returns the base URL of the server.
    """
    servers: list[ThreadingHTTPServer] = []

    def start(respond: Callable[[BaseHTTPRequestHandler], None]) -> str:
        handler = type("Handler", (_QuietHandler,), {"do_GET": respond})
        server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_address[1]}"

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()
