"""
messages.py
===========
Deterministic codec for the render/v1 message envelope.

Responsibilities:
    - Strict schema validation of the input envelope via Pydantic v2 models.
    - Base64 wire encoding of SourceFile payloads.
    - Encoding of the output envelope with the optional-field rules the host
      relies on (``modifiedSourceFiles`` omitted vs. explicitly empty).

Author: Render Plugin Architect
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from .errors import DecodeError, EncodeError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

# Lone UTF-16 surrogates (JSON escapes such as \ud800) have no UTF-8 form;
# they are written out as U+FFFD.
_LONE_SURROGATE_RE = re.compile("[\ud800-\udfff]")


# ---------------------------------------------------------------------------
# Source files
# ---------------------------------------------------------------------------


class SourceFile(BaseModel):
    """A single chart file: a path plus its raw bytes (base64 on the wire)."""

    name: str = Field(default="", description="Path of the file within the chart.")
    data: bytes = Field(default=b"")

    model_config = {"frozen": True}

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, v: Any) -> bytes:
        if v is None:
            return b""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, str):
            try:
                # Line breaks inside wrapped base64 are ignored, any other stray byte is not.
                return base64.b64decode(v.replace("\r", "").replace("\n", ""), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"data is not valid base64: {exc}") from exc
        raise ValueError(f"data must be a base64 string, got {type(v).__name__}")

    @field_serializer("data")
    def encode_base64(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Release / chart / capabilities
# ---------------------------------------------------------------------------


class ReleaseInfo(BaseModel):
    name: str = ""
    namespace: str = ""
    revision: int = 0
    is_install: bool = Field(default=False, alias="isInstall")
    is_upgrade: bool = Field(default=False, alias="isUpgrade")
    service: str = ""

    model_config = {"populate_by_name": True, "frozen": True}


class ChartInfo(BaseModel):
    name: str = ""
    version: str = ""
    app_version: str | None = Field(default=None, alias="appVersion")
    description: str | None = None
    type: str | None = None
    is_root: bool = Field(default=False, alias="isRoot")

    model_config = {"populate_by_name": True, "frozen": True}


class KubeVersionInfo(BaseModel):
    version: str = ""
    major: str = ""
    minor: str = ""

    model_config = {"populate_by_name": True, "frozen": True, "extra": "allow"}


class CapabilitiesInfo(BaseModel):
    kube_version: KubeVersionInfo = Field(default_factory=KubeVersionInfo, alias="kubeVersion")
    api_versions: list[str] = Field(default_factory=list, alias="apiVersions")
    helm_version: str = Field(default="", alias="helmVersion")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("kube_version", "api_versions", mode="before")
    @classmethod
    def null_as_default(cls, v: Any, info) -> Any:
        if v is None:
            return {} if info.field_name == "kube_version" else []
        return v


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class InputMessage(BaseModel):
    """
    The render/v1 request: everything one invocation may look at.

    Unknown keys are ignored and missing keys take zero values so that hosts
    can send a subset of the envelope.
    """

    release: ReleaseInfo = Field(default_factory=ReleaseInfo)
    values: dict[str, Any] = Field(default_factory=dict)
    chart: ChartInfo = Field(default_factory=ChartInfo)
    subcharts: dict[str, Any] = Field(default_factory=dict)
    files: list[SourceFile] = Field(default_factory=list)
    capabilities: CapabilitiesInfo = Field(default_factory=CapabilitiesInfo)
    source_files: list[SourceFile] = Field(default_factory=list, alias="sourceFiles")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator(
        "release", "values", "chart", "subcharts", "files", "capabilities", "source_files",
        mode="before",
    )
    @classmethod
    def null_as_empty(cls, v: Any, info) -> Any:
        # JSON null means "zero value" for every envelope field.
        if v is None:
            return [] if info.field_name in ("files", "source_files") else {}
        return v


class OutputMessage(BaseModel):
    """
    The render/v1 response.

    ``modified_source_files`` is None when the plugin requests no change to the
    working set; an empty list is an explicit "delete everything".
    """

    rendered_files: dict[str, str] = Field(default_factory=dict, alias="renderedFiles")
    modified_source_files: list[SourceFile] | None = Field(
        default=None, alias="modifiedSourceFiles"
    )
    errors: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode(raw: bytes | str) -> InputMessage:
    """
    Parse and validate a raw render/v1 request.

    Parameters
    ----------
    raw:
        The complete request document.

    Returns
    -------
    InputMessage

    Raises
    ------
    DecodeError
        If the document is empty, not JSON, not an object, or does not match
        the envelope schema.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"failed to parse input: {exc}") from exc

    if not raw.strip():
        raise DecodeError("failed to parse input: no input provided")

    # ---- Phase 1: JSON syntax validation ----
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("JSON syntax error at line %d, col %d: %s", exc.lineno, exc.colno, exc.msg)
        raise DecodeError(
            f"failed to parse input: line {exc.lineno}, col {exc.colno}: {exc.msg}"
        ) from exc
    except RecursionError as exc:
        logger.error("JSON document nested too deeply")
        raise DecodeError("failed to parse input: document nested too deeply") from exc

    if not isinstance(document, dict):
        raise DecodeError(
            f"failed to parse input: top-level value must be an object, got {type(document).__name__}"
        )

    # ---- Phase 2: Envelope schema validation ----
    try:
        message = InputMessage.model_validate(document)
    except RecursionError as exc:
        logger.error("Input envelope nested too deeply")
        raise DecodeError("failed to parse input: document nested too deeply") from exc
    except Exception as exc:
        logger.error("Input envelope validation failed: %s", exc)
        raise DecodeError(f"failed to parse input: {exc}") from exc

    logger.debug(
        "Decoded request for release '%s': %d source files, %d files",
        message.release.name,
        len(message.source_files),
        len(message.files),
    )
    return message


def to_wire(output: OutputMessage) -> dict[str, Any]:
    """Return the JSON-ready dict for *output* (camelCase, optional fields applied)."""
    document: dict[str, Any] = {"renderedFiles": dict(output.rendered_files)}
    if output.modified_source_files is not None:
        document["modifiedSourceFiles"] = [
            f.model_dump(mode="json") for f in output.modified_source_files
        ]
    if output.errors:
        document["errors"] = list(output.errors)
    return document


def encode(output: OutputMessage) -> bytes:
    """
    Serialise a response envelope to compact UTF-8 JSON.

    Raises
    ------
    EncodeError
        If the envelope holds something JSON cannot represent.
    """
    try:
        text = json.dumps(to_wire(output), ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as exc:
        logger.error("Output envelope serialisation failed: %s", exc)
        raise EncodeError(f"failed to marshal output: {exc}") from exc
    return _LONE_SURROGATE_RE.sub("\ufffd", text).encode("utf-8")


def failure_output(message: str) -> OutputMessage:
    """The fatal envelope: nothing rendered, a single error, no working-set change."""
    return OutputMessage(rendered_files={}, errors=[message])
