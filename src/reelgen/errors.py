"""Exception types raised by the reel generator."""


class ReelError(Exception):
    """Base class for all reel generator errors."""


class ParseEmptyError(ReelError):
    """The script contained no usable scenes."""


class ProviderError(ReelError):
    """A single image or speech generation request failed.

    The message is human readable and is surfaced to the user verbatim.
    """


class ExportError(ReelError):
    """Uploading the reel to the drive failed."""


class ConfigError(ReelError, ValueError):
    """Required credentials or settings are missing or invalid."""


class BusyError(ReelError):
    """Another long-running operation already holds the busy gate."""
