"""Exceptions raised by the dataset synchronization pipeline."""


class SyncError(RuntimeError):
    """Base class for all the errors raised by ddfsync."""


class TagDiscoveryError(SyncError):
    """Error emitted when we cannot discover the remote tags."""


class ProtocolError(TagDiscoveryError):
    """The remote sent a malformed or unexpected ref advertisement."""


class NoTagsFoundError(TagDiscoveryError):
    """The remote does not advertise any usable tag."""


class DownloadError(SyncError):
    """Error emitted when we cannot download the archive."""


class TransferTimeoutError(DownloadError):
    """No data arrived within the idle threshold."""


class ExtractionError(SyncError):
    """Error emitted when we cannot extract the archive."""


class UnexpectedLayoutError(ExtractionError):
    """The extracted archive does not contain exactly one top-level directory."""


class ConfigError(SyncError):
    """The configuration file is missing or invalid."""
