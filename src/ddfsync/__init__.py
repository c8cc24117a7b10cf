"""ddfsync library.

This library keeps a local directory in sync with the latest tagged
release of a dataset hosted on a source-code forge: it discovers the
latest version tag without cloning, downloads the release archive,
unpacks it and merges its contents into the destination directory.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import SyncConfig, load_config
from .errors import (
    DownloadError,
    ExtractionError,
    NoTagsFoundError,
    ProtocolError,
    SyncError,
    TagDiscoveryError,
    TransferTimeoutError,
    UnexpectedLayoutError,
)
from .sync import DatasetSync, SyncResult, SyncState
from .tags import RemoteRepository, TagResolver, resolve_latest_tag

try:
    __version__ = version("ddfsync")
except PackageNotFoundError:  # pragma: no cover - not installed
    __version__ = "0.0.0"

__all__ = [
    "DatasetSync",
    "DownloadError",
    "ExtractionError",
    "NoTagsFoundError",
    "ProtocolError",
    "RemoteRepository",
    "SyncConfig",
    "SyncError",
    "SyncResult",
    "SyncState",
    "TagDiscoveryError",
    "TagResolver",
    "TransferTimeoutError",
    "UnexpectedLayoutError",
    "__version__",
    "load_config",
    "resolve_latest_tag",
]
