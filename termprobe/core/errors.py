"""Domain-specific errors for termprobe."""


class TermprobeError(Exception):
    """Base error for termprobe."""


class CatalogValidationError(TermprobeError):
    """Raised when the feature catalog does not conform to schema or semantics."""


class CatalogLoadError(TermprobeError):
    """Raised when reading the feature catalog fails."""


class ProviderNotStartedError(TermprobeError):
    """Raised when capabilities are read outside of a running TermcapProvider."""


class TransportError(TermprobeError):
    """Base transport error."""


class RawModeError(TransportError):
    """Raised when the terminal cannot be switched into or out of raw mode."""


class TransportWriteError(TransportError):
    """Raised when writing query bytes to the terminal fails."""
