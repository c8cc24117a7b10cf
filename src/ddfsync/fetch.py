"""Module downloading archives while watching for stalled transfers."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import requests
import urllib3
from urllib3.exceptions import ReadTimeoutError

from .config import DEFAULT_IDLE_TIMEOUT
from .errors import DownloadError, TransferTimeoutError

CHUNK_SIZE: Final[int] = 65536

log = logging.getLogger("fetch")


@dataclass(frozen=True, kw_only=True)
class DownloadTask:
    """
    Download of a single URL into a local file.

    Attributes:
        url: the http:// or https:// URL to fetch
        dest_dir: directory where to write the file (created if missing)
        file_name: name of the file inside dest_dir
    """

    url: str
    dest_dir: Path
    file_name: str

    def file_path(self) -> Path:
        """Returns the absolute path of the downloaded file."""
        return (Path(self.dest_dir) / self.file_name).resolve()


class IdleWatchdog:
    """
    Timer firing only when progress stalls.

    Use as a context manager and call kick() whenever data arrives:

        with IdleWatchdog(240, on_expire=abort) as watchdog:
            for chunk in chunks:
                watchdog.kick()

    When timeout seconds elapse without a kick, `expired` becomes
    True and on_expire is invoked from the watchdog thread.
    """

    def __init__(self, timeout: float, on_expire: Callable[[], object]) -> None:
        self.timeout = timeout
        self.on_expire = on_expire
        self.expired = False
        self._cond = threading.Condition()
        self._deadline = 0.0
        self._stopped = False
        self._thread: threading.Thread | None = None

    def __enter__(self) -> IdleWatchdog:
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
        return False

    def start(self) -> None:
        self.kick()
        self._thread = threading.Thread(target=self._run, name="idle-watchdog", daemon=True)
        self._thread.start()

    def kick(self) -> None:
        """Move the deadline timeout seconds into the future."""
        with self._cond:
            self._deadline = time.monotonic() + self.timeout

    def stop(self) -> None:
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self) -> None:
        with self._cond:
            while not self._stopped:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    self.expired = True
                    break
                self._cond.wait(remaining)
        if self.expired:
            log.warning("no data received for %.1f seconds", self.timeout)
            self.on_expire()


def download(
    task: DownloadTask,
    *,
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    connect_timeout: float = 30.0,
    session: requests.Session | None = None,
    on_progress: Callable[[int, int | None], None] | None = None,
) -> Path:
    """
    Download task.url into task.file_path() and return the file path.

    Redirects are followed. The transfer is aborted when no data arrives
    for idle_timeout seconds, regardless of the total elapsed time.
    The on_progress callback receives the number of bytes received so far
    and the total size, when known. Partial files are left on disk.

    Raises:
        DownloadError: if we cannot create the directory or the
            transfer fails.
        TransferTimeoutError: if the transfer stalls.
    """
    try:
        Path(task.dest_dir).mkdir(mode=0o777, parents=True, exist_ok=True)
    except OSError as exc:
        raise DownloadError(f"cannot create {task.dest_dir}: {exc}") from exc

    file_path = task.file_path()
    owned = session is None
    if session is None:
        session = requests.Session()
    try:
        log.info("fetching %s... start", task.url)
        _fetch(task.url, file_path, session, idle_timeout, connect_timeout, on_progress)
        log.info("fetching %s... ok", task.url)
    finally:
        if owned:
            session.close()
    return file_path


def _iter_received(resp: requests.Response) -> Iterator[bytes]:
    # read1() returns as soon as the socket yields any bytes, so the idle
    # deadline moves with every packet rather than with every full chunk.
    while True:
        chunk = resp.raw.read1(CHUNK_SIZE, decode_content=True)
        if not chunk:
            return
        yield chunk


def _shutdown_connection(resp: requests.Response) -> None:
    """Shut down the socket under resp so that a blocked read returns."""
    sock = getattr(getattr(resp.raw, "connection", None), "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        log.debug("shutting down the connection... failure: %s", exc)


def _fetch(
    url: str,
    file_path: Path,
    session: requests.Session,
    idle_timeout: float,
    connect_timeout: float,
    on_progress: Callable[[int, int | None], None] | None,
) -> None:
    try:
        resp = session.get(url, stream=True, timeout=(connect_timeout, idle_timeout))
    except requests.Timeout as exc:
        raise TransferTimeoutError("File transfer timeout!") from exc
    except requests.RequestException as exc:
        raise DownloadError(f"cannot fetch {url}: {exc}") from exc

    with resp:
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise DownloadError(f"cannot fetch {url}: {exc}") from exc

        total = resp.headers.get("Content-Length")
        total = int(total) if total is not None else None
        received = 0

        # Closing resp belongs to this thread, the watchdog only shuts
        # the socket down.
        watchdog = IdleWatchdog(idle_timeout, on_expire=lambda: _shutdown_connection(resp))
        with watchdog, open(file_path, "wb") as filep:
            try:
                for chunk in _iter_received(resp):
                    watchdog.kick()
                    filep.write(chunk)
                    received += len(chunk)
                    if on_progress is not None:
                        on_progress(received, total)
            except (urllib3.exceptions.HTTPError, OSError) as exc:
                if watchdog.expired or isinstance(exc, (ReadTimeoutError, TimeoutError)):
                    raise TransferTimeoutError("File transfer timeout!") from exc
                raise DownloadError(f"cannot fetch {url}: {exc}") from exc
            except Exception as exc:
                if watchdog.expired:
                    raise TransferTimeoutError("File transfer timeout!") from exc
                raise

        # A shut down socket may look like a clean end of stream.
        if watchdog.expired:
            raise TransferTimeoutError("File transfer timeout!")
