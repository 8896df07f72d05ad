"""Low Music exceptions for library, playback and persistence errors."""


class LowMusicError(Exception):
    """Base exception for Low Music operations."""

    pass


class ExtractionError(LowMusicError):
    """Raised when a file's metadata cannot be read or parsed."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        super().__init__(message or f"Could not read metadata from {path}")


class ScanIOError(LowMusicError):
    """Raised when a directory cannot be listed during a scan."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        super().__init__(message or f"Could not read directory {path}")


class ScanCancelledError(LowMusicError):
    """Raised when a library scan is cancelled before completion."""

    pass


class PlaybackError(LowMusicError):
    """Raised when the playback backend cannot open or play a file."""

    pass


class PersistenceError(LowMusicError):
    """Raised when a store value cannot be written."""

    def __init__(self, table: str, message: str = None):
        self.table = table
        super().__init__(message or f"Could not save '{table}'")
