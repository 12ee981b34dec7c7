"""
files.py
========
Read-only access to a chart's non-template files from inside templates.

Method names follow the chart template API (``Files.Get``, ``Files.Glob`` ...)
because templates call them by those names.
"""

from __future__ import annotations

import base64
import fnmatch
import posixpath
from typing import Iterable, Mapping

from .messages import SourceFile


class Files:
    """Immutable name → bytes view over the message's ``files`` sequence (last duplicate wins)."""

    def __init__(self, files: Iterable[SourceFile] | Mapping[str, bytes] = ()) -> None:
        if isinstance(files, Mapping):
            self._files = dict(files)
        else:
            self._files = {f.name: f.data for f in files}

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: object) -> bool:
        return name in self._files

    def __iter__(self):
        return iter(sorted(self._files))

    def Get(self, name: str) -> str:  # noqa: N802 - template API name
        data = self._files.get(name)
        return "" if data is None else data.decode("utf-8", errors="replace")

    def GetBytes(self, name: str) -> bytes:  # noqa: N802
        return self._files.get(name, b"")

    def Glob(self, pattern: str) -> "Files":  # noqa: N802
        """Files whose full path matches the shell-style *pattern*."""
        return Files(
            {name: data for name, data in self._files.items() if fnmatch.fnmatchcase(name, pattern)}
        )

    def AsConfig(self) -> dict[str, str]:  # noqa: N802
        """Base name → text, ready to drop into a ConfigMap ``data`` block."""
        return {
            posixpath.basename(name): data.decode("utf-8", errors="replace")
            for name, data in sorted(self._files.items())
        }

    def AsSecrets(self) -> dict[str, str]:  # noqa: N802
        """Base name → base64 text, ready to drop into a Secret ``data`` block."""
        return {
            posixpath.basename(name): base64.b64encode(data).decode("ascii")
            for name, data in sorted(self._files.items())
        }

    def Lines(self, name: str) -> list[str]:  # noqa: N802
        data = self._files.get(name)
        if data is None:
            return []
        return data.decode("utf-8", errors="replace").split("\n")
