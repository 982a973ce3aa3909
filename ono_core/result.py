# ==========================================
# ERROR HANDLING: Result<T, E> Model
# ==========================================
"""
Per-page build results.

A multi-page build never raises for a single page; each page yields
Ok(PageResult) or Err(BuildFailure).
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .errors import (
    AssetCopyError,
    BundleError,
    CircularDependencyError,
    ConfigError,
    EvaluationError,
    ImportScanError,
    MissingDefaultExportError,
    PluginError,
    SourceNotFoundError,
    TransformError,
    display_path,
)


class ErrorKind(str, Enum):
    """Categorizes page build failures."""
    SOURCE_NOT_FOUND = "SourceNotFound"
    CIRCULAR_DEPENDENCY = "CircularDependency"
    TRANSFORM_ERROR = "TransformError"
    SCAN_ERROR = "ImportScanError"
    BUNDLE_ERROR = "BundleError"
    PLUGIN_ERROR = "PluginError"
    ASSET_COPY_ERROR = "AssetCopyError"
    EVALUATION_ERROR = "EvaluationError"
    MISSING_DEFAULT_EXPORT = "MissingDefaultExport"
    CONFIG_ERROR = "ConfigError"
    RENDER_ERROR = "RenderError"


# Most specific first: the first matching class wins
_ERROR_KINDS = [
    (SourceNotFoundError, ErrorKind.SOURCE_NOT_FOUND),
    (CircularDependencyError, ErrorKind.CIRCULAR_DEPENDENCY),
    (TransformError, ErrorKind.TRANSFORM_ERROR),
    (ImportScanError, ErrorKind.SCAN_ERROR),
    (BundleError, ErrorKind.BUNDLE_ERROR),
    (PluginError, ErrorKind.PLUGIN_ERROR),
    (AssetCopyError, ErrorKind.ASSET_COPY_ERROR),
    (MissingDefaultExportError, ErrorKind.MISSING_DEFAULT_EXPORT),
    (EvaluationError, ErrorKind.EVALUATION_ERROR),
    (ConfigError, ErrorKind.CONFIG_ERROR),
]


class BuildFailure(BaseModel):
    """Rich error context for a page that failed to build."""
    kind: ErrorKind
    message: str
    path: Optional[str] = None
    details: Optional[str] = None

    def __str__(self):
        result = "❌ " + self.kind.value + ": " + self.message
        if self.path:
            result += "\n   Page: " + self.path
        if self.details:
            result += "\n   Details: " + self.details
        return result

    @classmethod
    def from_exception(cls, error, path=None):
        """Classify an exception raised while building the page at `path`."""
        kind = ErrorKind.RENDER_ERROR
        for error_class, error_kind in _ERROR_KINDS:
            if isinstance(error, error_class):
                kind = error_kind
                break

        message = getattr(error, 'message', None) or str(error) or type(error).__name__
        details = str(error) if str(error) != message else None
        return cls(kind=kind, message=message, path=path, details=details)


class Result:
    """Outcome of building one page: Ok(PageResult) or Err(BuildFailure)."""

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        return isinstance(self, Err)

    def unwrap(self):
        """The PageResult; raises if the page failed to build."""
        if isinstance(self, Ok):
            return self.value
        failure = self.error
        page = display_path(failure.path) if failure.path else "Page"
        raise RuntimeError(f"{page} failed to build ({failure.kind.value}): {failure.message}")

    def unwrap_or(self, default):
        if isinstance(self, Ok):
            return self.value
        return default


class Ok(Result):
    """A page that was written."""

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"Ok({self.value})"


class Err(Result):
    """A page that failed; the rest of the build went on."""

    def __init__(self, error):
        self.error = error

    def __repr__(self):
        if self.error.path:
            return f"Err({self.error.kind.value} in {display_path(self.error.path)})"
        return f"Err({self.error.kind.value})"

    def __str__(self):
        return str(self.error)
