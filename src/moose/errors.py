"""Error types for moose."""


class MooseError(Exception):
    """Base error for moose."""


class ConfigError(MooseError):
    """Raised when a project or host configuration file cannot be used."""


class SettingsError(ConfigError):
    """Raised when a plugin declares a malformed settings map."""


class PreconditionError(MooseError):
    """Raised when a command cannot run on the given document or selection."""


class TableError(MooseError, ValueError):
    """Raised for invalid table dimensions."""


class ImageDownloadError(MooseError):
    """Raised when a single image cannot be fetched or written."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to download {url}: {reason}")
        self.url = url
        self.reason = reason
