"""Custom exceptions for ReMixr."""

from typing import Any


class RemixrError(Exception):
    """Base exception for all ReMixr errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class CatalogError(RemixrError):
    """Raised when a feature catalog or feature pack is invalid."""


class CompositionError(RemixrError):
    """Raised when a composition call cannot produce a new project.

    ``step`` names the stage that failed so callers can report it.
    """

    step = "compose"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message, details)
        if step is not None:
            self.step = step


class ManifestParseError(CompositionError):
    """Raised when manifest.json is missing or is not a usable JSON object."""

    step = "parse"


class UnknownFeatureError(CompositionError):
    """Raised when a selection references a feature id absent from the catalog."""

    step = "select"

    def __init__(
        self,
        feature_ids: list[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        self.feature_ids = sorted(feature_ids)
        msg = f"Unknown feature id(s): {', '.join(self.feature_ids)}"
        super().__init__(msg, {"feature_ids": self.feature_ids, **(details or {})})


class TemplateError(RemixrError):
    """Raised when a project template cannot be resolved."""


class WorkspaceError(RemixrError):
    """Raised when a project directory cannot be read or written."""
