"""
errors.py
=========
Failure taxonomy for a single render/v1 invocation.

Fatal errors (``DecodeError``, ``EncodeError``) abort the invocation with a
non-zero status. Per-file errors (``CompileError``, ``ExecutionError``) are
recorded in the response and the affected file is skipped. ``RenderError`` is
raised from inside a running template and surfaces as an ``ExecutionError``
for that file.
"""

from __future__ import annotations


class PluginError(Exception):
    """Base class for every failure the plugin knows how to report."""


class DecodeError(PluginError):
    """The input envelope is malformed. Fatal."""


class EncodeError(PluginError):
    """The output envelope cannot be serialised. Fatal."""


class RenderError(PluginError):
    """Raised by template functions (``required``, ``fail``, ``include``, ...)."""


class _SourceFileError(PluginError):
    verb = "error"

    def __init__(self, source_name: str, detail: str | BaseException) -> None:
        self.source_name = source_name
        self.detail = str(detail)
        super().__init__(f"{self.verb} in {source_name}: {self.detail}")


class CompileError(_SourceFileError):
    """A partial or primary template failed to parse."""

    verb = "parse error"


class ExecutionError(_SourceFileError):
    """A primary template failed while executing."""

    verb = "render error"
