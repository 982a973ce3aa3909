"""
Error handling utilities for the Ono build pipeline.
"""
import os


class OnoBuildError(Exception):
    """Base exception for build failures with file context and hints."""
    def __init__(self, message, path=None, line_number=None, column=None, context=None,
                 referrer=None, suggestion=None):
        self.message = message
        self.path = path
        self.line_number = line_number
        self.column = column
        self.context = context  # The offending line
        self.referrer = referrer  # The file that pulled `path` into the build
        self.suggestion = suggestion  # How to fix it
        super().__init__(self._format_error())

    def _format_error(self):
        """Format the error message with location, referrer and suggestion."""
        lines = [self.message]
        if self.path:
            location = f"   in {display_path(self.path)}"
            if self.line_number:
                location += f" at line {self.line_number}"
                if self.column:
                    location += f", column {self.column}"
            lines.append(location)

        if self.context:
            lines.append(f"   > {self.context}")

        if self.referrer:
            lines.append(f"   imported from {display_path(self.referrer)}")

        if self.suggestion:
            lines.append(f"   💡 {self.suggestion}")

        return "\n".join(lines)


class SourceNotFoundError(OnoBuildError):
    """A module or asset reached during the build does not exist."""
    def __init__(self, path, referrer=None, reason=None):
        message = f"Cannot read file: {display_path(path)}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            path=path,
            referrer=referrer,
            suggestion="Check the import path and the file extension",
        )


class CircularDependencyError(OnoBuildError):
    """The dependency graph contains a cycle."""
    def __init__(self, cycle):
        self.cycle = list(cycle)
        chain = " -> ".join(display_path(p) for p in self.cycle)
        super().__init__(
            f"Circular dependency detected: {chain}",
            path=self.cycle[0] if self.cycle else None,
            suggestion="Move the shared code into a module that both files import",
        )


class TransformError(OnoBuildError):
    """The transform adapter failed on a module."""


class ImportScanError(OnoBuildError):
    """Import/export declarations could not be read unambiguously."""


class BundleError(OnoBuildError):
    """Modules cannot be linked together (unsupported or missing exports)."""


class PluginError(OnoBuildError):
    """A plugin hook raised an unexpected exception."""
    def __init__(self, plugin_name, hook, cause, path=None):
        self.plugin_name = plugin_name
        self.hook = hook
        super().__init__(
            f'Error in plugin "{plugin_name}" hook "{hook}": {cause}',
            path=path,
        )


class AssetCopyError(OnoBuildError):
    """An asset could not be copied to the output directory."""


class EvaluationError(OnoBuildError):
    """The host evaluator failed to run a bundle or a component."""


class MissingDefaultExportError(OnoBuildError):
    """The entry module does not export a usable default."""
    def __init__(self, path):
        super().__init__(
            "No default export found",
            path=path,
            suggestion="Add 'export default function Page() { ... }' to the page",
        )


class ConfigError(OnoBuildError):
    """The build configuration file is invalid."""


def display_path(path):
    """Return `path` relative to the working directory when that is shorter."""
    if not path:
        return path
    try:
        relative = os.path.relpath(path)
    except ValueError:
        # Different drive on Windows
        return path
    return relative if len(relative) < len(path) else path


def get_line_context(source_code, line_number):
    """Extract the line of code from source by line number (1-based)."""
    if not source_code or line_number is None:
        return None
    source_lines = source_code.split('\n')
    if 0 < line_number <= len(source_lines):
        return source_lines[line_number - 1].strip()
    return None
