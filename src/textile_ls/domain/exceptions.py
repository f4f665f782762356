"""Custom exceptions for textile-ls."""


class TextileLSError(Exception):
    """Base exception for all textile-ls errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TextileLSError):
    """Raised when the settings or a workspace override file are invalid."""

    pass


class LinkResolutionError(TextileLSError):
    """Raised when an href cannot be turned into a link target."""

    pass


class WorkspaceError(TextileLSError):
    """Raised when the workspace cannot be scanned or written."""

    pass


class TokenizeError(TextileLSError):
    """Raised when a document cannot be tokenized."""

    pass
