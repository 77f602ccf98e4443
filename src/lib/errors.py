"""
Exception hierarchy for pagedmd

Every error raised by the engine derives from PagedmdError. Errors carry the
structured context (offending value, valid alternatives, source location,
plugin identity) needed to fix the input without reading engine internals.
"""

from typing import List, Optional, Sequence, Union


class PagedmdError(Exception):
    """Base class for all pagedmd errors"""
    pass


class DirectiveValidationError(PagedmdError):
    """
    Raised when a directive's value falls outside its enumerated domain.

    Fatal: a typo in a directive would otherwise silently produce wrong
    pagination, so the document build is aborted.

    Attributes:
        directive: Directive name without the leading '@' (e.g., "page")
        value: Offending value, or None when the value was missing
        valid_values: Complete list of accepted values
        suggestion: Closest valid value within the edit-distance threshold
        example: One-line usage example
        note: Optional extra hint appended to the message
        line: 1-based source line, filled in by the rewriter
        source: Source file path, filled in by the rewriter when known
    """

    def __init__(
        self,
        directive: str,
        value: Optional[str],
        valid_values: Sequence[Union[str, int]],
        suggestion: Optional[str] = None,
        example: str = "",
        note: str = "",
    ) -> None:
        self.directive = directive
        self.value = value
        self.valid_values: List[str] = [str(v) for v in valid_values]
        self.suggestion = suggestion
        self.example = example
        self.note = note
        self.line: Optional[int] = None
        self.source: Optional[str] = None
        super().__init__(self.message_build())

    def message_build(self) -> str:
        """Compose the multi-line, user-facing message"""
        if self.value is None:
            lines = [
                f"@{self.directive} directive requires a value.",
                f"Usage: <!-- @{self.directive}: value -->",
            ]
        else:
            lines = [f'Invalid @{self.directive} value "{self.value}".']
            if self.suggestion:
                lines.append(f'Did you mean "{self.suggestion}"?')
        lines.append(f"Valid values: {', '.join(self.valid_values)}")
        if self.example:
            lines.append(f"Example: {self.example}")
        if self.note:
            lines.append(f"Note: {self.note}")
        return "\n".join(lines)

    def location_set(self, line: Optional[int], source: Optional[str] = None) -> None:
        """Attach source location and refresh the message"""
        self.line = line
        self.source = source
        self.args = (str(self),)

    def __str__(self) -> str:
        message = self.message_build()
        if self.line is None and self.source is None:
            return message
        where = self.source or "<input>"
        line = self.line if self.line is not None else "unknown"
        return f"Directive parsing error at {where}, line {line}:\n{message}"


class UnknownDirectiveWarning(UserWarning):
    """
    Unrecognized directive name.

    Never raised: the rewriter formats it and logs it via WARN(), leaving
    the comment untouched.
    """

    def __init__(self, name: str, valid_names: Sequence[str], suggestion: Optional[str] = None) -> None:
        self.name = name
        self.valid_names = list(valid_names)
        self.suggestion = suggestion
        did_you_mean = f' Did you mean "@{suggestion}"?' if suggestion else ""
        super().__init__(
            f'Unknown directive "@{name}".{did_you_mean}\n'
            f"Valid directives: {', '.join('@' + n for n in self.valid_names)}"
        )


class PluginLoadError(PagedmdError):
    """
    Raised when a plugin cannot be resolved or loaded.

    Fatal in strict mode; logged and skipped in lenient mode.

    Attributes:
        plugin_name: Identity of the plugin (path, name or url)
        source_kind: Resolved source kind ("local", "package", ...)
    """

    def __init__(self, message: str, plugin_name: str = "unknown", source_kind: Optional[str] = None) -> None:
        super().__init__(message)
        self.plugin_name = plugin_name
        self.source_kind = source_kind


class PluginSecurityError(PluginLoadError):
    """Plugin path escapes the permitted base directory. Always fatal."""
    pass


class PluginNotSupportedError(PluginLoadError):
    """Plugin source kind is recognized but not implemented (remote URLs)"""
    pass


class BuildError(PagedmdError):
    """
    Document build failure, wrapping the underlying error with the file path.

    Attributes:
        path: File being compiled when the failure happened
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path
