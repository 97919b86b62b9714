"""
Exception taxonomy of the viewer.

Only configuration errors are fatal, and only to the map: the application
catches them at construction and keeps running without a live map. Stale
async completions and empty hit-tests are not errors and never raise.
"""


class LodeError(Exception):
    """Base class for viewer errors."""


class ConfigurationError(LodeError):
    """Invalid or incomplete viewer configuration (missing token, empty catalog, bad file)."""


class StyleNotReadyError(LodeError):
    """A render-surface mutation was issued before the current style finished loading."""

    def __init__(self, operation: str, style_ref: str | None):
        super().__init__(f"Cannot {operation}: style '{style_ref}' has not finished loading")
        self.operation = operation
        self.style_ref = style_ref


class TableLoadError(LodeError):
    """The table dataset could not be fetched or decoded."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to load table dataset from {url}: {reason}")
        self.url = url
        self.reason = reason


class ExpressionError(LodeError):
    """A filter expression is malformed or uses an unsupported operator."""
