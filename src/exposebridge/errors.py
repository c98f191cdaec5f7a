class ExposeBridgeError(Exception):
    """Base class for every error raised by expose-bridge."""


class ConfigurationError(ExposeBridgeError, ValueError):
    """The project configuration could not be read or is invalid."""


class NoValidFilesError(ExposeBridgeError):
    """None of the requested source files could be read."""

    def __init__(self, requested: int) -> None:
        super().__init__(f"No valid files found to analyze ({requested} requested)")
        self.requested = requested


class ArtifactWriteError(ExposeBridgeError, OSError):
    """A generated artifact could not be written to disk."""

    def __init__(self, path: str, reason: Exception) -> None:
        super().__init__(f"Failed to write {path}: {reason}")
        self.path = path
        self.reason = reason
