"""
transform.py
============
Sequential source-file transformation for chained plugins.

A plugin receives the ordered working set (``SourceFiles``) and may return a
full replacement (``ModifiedSourceFiles``) for the next plugin in the chain.
``FileTransform`` records per-index decisions against the received sequence
and applies them in one step, so the result is deterministic regardless of
the order the decisions were made in:

    received[i] kept (maybe renamed/rewritten) in index order, then appends.

The received files are never mutated; changed entries are new objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from .messages import OutputMessage, SourceFile

logger = logging.getLogger(__name__)


class TransformAction(str, Enum):
    REMOVED = "REMOVED"
    MODIFIED = "MODIFIED"
    RENAMED = "RENAMED"
    PASSED = "PASSED"
    ADDED = "ADDED"


@dataclass(frozen=True)
class TransformRecord:
    """One journal line: what happened to one file."""

    action: TransformAction
    name: str
    new_name: str | None = None

    def describe(self) -> str:
        if self.action is TransformAction.RENAMED:
            return f"{self.action.value}: {self.name} -> {self.new_name}"
        return f"{self.action.value}: {self.name}"


@dataclass
class TransformResult:
    files: list[SourceFile] = field(default_factory=list)
    records: list[TransformRecord] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.files]


@dataclass
class _Decision:
    deleted: bool = False
    data: bytes | None = None
    new_name: str | None = None


class FileTransform:
    """
    Builder for the next stage's working set.

    Usage
    -----
    ::

        transform = FileTransform(message.source_files)
        transform.delete(0)
        transform.rewrite(1, b"new content")
        transform.rename(2, "templates/c.renamed")
        transform.append("templates/d.test", b"key: value")
        result = transform.apply()      # result.files -> [B', C', D]
    """

    def __init__(self, received: Iterable[SourceFile]) -> None:
        self._received: tuple[SourceFile, ...] = tuple(received)
        self._decisions: dict[int, _Decision] = {}
        self._appended: list[SourceFile] = []

    @property
    def received(self) -> Sequence[SourceFile]:
        return self._received

    def _decision(self, index: int) -> _Decision:
        if not 0 <= index < len(self._received):
            raise IndexError(
                f"source file index {index} out of range (received {len(self._received)})"
            )
        decision = self._decisions.setdefault(index, _Decision())
        if decision.deleted:
            raise ValueError(f"source file {self._received[index].name} is already deleted")
        return decision

    def delete(self, index: int) -> None:
        self._decision(index).deleted = True

    def rewrite(self, index: int, data: bytes | str) -> None:
        self._decision(index).data = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def rename(self, index: int, new_name: str) -> None:
        self._decision(index).new_name = new_name

    def append(self, name: str, data: bytes | str) -> None:
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._appended.append(SourceFile(name=name, data=payload))

    def apply(self) -> TransformResult:
        result = TransformResult()
        for index, source in enumerate(self._received):
            decision = self._decisions.get(index, _Decision())

            if decision.deleted:
                result.records.append(TransformRecord(TransformAction.REMOVED, source.name))
                logger.debug("Removing file: %s", source.name)
                continue

            changes: dict = {}
            if decision.data is not None:
                changes["data"] = decision.data
                result.records.append(TransformRecord(TransformAction.MODIFIED, source.name))
                logger.debug("Modified file: %s", source.name)
            if decision.new_name is not None:
                changes["name"] = decision.new_name
                result.records.append(
                    TransformRecord(TransformAction.RENAMED, source.name, decision.new_name)
                )
                logger.debug("Renamed file: %s -> %s", source.name, decision.new_name)
            if not changes:
                result.records.append(TransformRecord(TransformAction.PASSED, source.name))

            result.files.append(source.model_copy(update=changes) if changes else source)

        for added in self._appended:
            result.files.append(added)
            result.records.append(TransformRecord(TransformAction.ADDED, added.name))
            logger.debug("Added new file: %s", added.name)

        return result


# ---------------------------------------------------------------------------
# Handoff contract (host side)
# ---------------------------------------------------------------------------


def next_source_files(received: Sequence[SourceFile], output: OutputMessage) -> list[SourceFile]:
    """The working set the next plugin in a chain receives."""
    if output.modified_source_files is None:
        return list(received)
    return list(output.modified_source_files)


def merge_rendered_files(outputs: Iterable[OutputMessage]) -> dict[str, str]:
    """Merge every plugin's RenderedFiles; a later plugin overwrites an earlier key."""
    merged: dict[str, str] = {}
    for output in outputs:
        merged.update(output.rendered_files)
    return merged
