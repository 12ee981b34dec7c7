"""
invocation.py
=============
Single-invocation orchestration agent.

This module is the only place where a raw request becomes a raw response.
It owns the render/v1 status convention:

    0  : success (``errors`` may still be non-empty for partial failures)
    1  : fatal: the host discards this stage's output

Responsibilities:
    - Drive one invocation through a formal phase state machine.
    - Convert every failure into an ``errors`` entry plus a status code; the
      plugin never raises across the host boundary.
    - Log each phase so hosts that capture stderr get a readable trace.

Author: Render Plugin Architect
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto

from render_core.config import RenderConfig
from render_core.errors import DecodeError, EncodeError
from render_core.messages import InputMessage, OutputMessage, decode, encode, failure_output

from .plugins import PluginFunc, get_plugin

logger = logging.getLogger(__name__)

STATUS_OK = 0
STATUS_FATAL = 1


# ---------------------------------------------------------------------------
# Invocation state machine
# ---------------------------------------------------------------------------


class InvocationPhase(Enum):
    """
    Ordered phases of one plugin invocation.

    An agent moves forward only; FAILED is terminal and reachable from every
    working phase.
    """
    IDLE = auto()
    DECODING = auto()
    RENDERING = auto()
    ENCODING = auto()
    DONE = auto()
    FAILED = auto()


_VALID_TRANSITIONS: dict[InvocationPhase, set[InvocationPhase]] = {
    InvocationPhase.IDLE:      {InvocationPhase.DECODING},
    InvocationPhase.DECODING:  {InvocationPhase.RENDERING, InvocationPhase.FAILED},
    InvocationPhase.RENDERING: {InvocationPhase.ENCODING, InvocationPhase.FAILED},
    InvocationPhase.ENCODING:  {InvocationPhase.DONE, InvocationPhase.FAILED},
    InvocationPhase.DONE:      set(),
    InvocationPhase.FAILED:    set(),
}


@dataclass
class InvocationResult:
    """What the host receives: status code, response bytes, and the decoded response."""
    status: int
    payload: bytes
    output: OutputMessage
    phases: list[InvocationPhase] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def is_fatal(self) -> bool:
        return self.status != STATUS_OK


# ---------------------------------------------------------------------------
# Main agent
# ---------------------------------------------------------------------------


class InvocationAgent:
    """
    Runs exactly one render/v1 invocation.

    Example
    -------
    ::

        agent = InvocationAgent("template", RenderConfig.from_env())
        result = agent.invoke(sys.stdin.buffer.read())
        sys.stdout.buffer.write(result.payload)
        sys.exit(result.status)
    """

    def __init__(self, plugin_name: str, config: RenderConfig | None = None) -> None:
        self.plugin_name = plugin_name
        self.config = config or RenderConfig()
        self._plugin: PluginFunc = get_plugin(plugin_name)
        self._phase = InvocationPhase.IDLE
        self._history: list[InvocationPhase] = [InvocationPhase.IDLE]

    @property
    def phase(self) -> InvocationPhase:
        return self._phase

    def invoke(self, raw: bytes | str) -> InvocationResult:
        """
        Decode *raw*, run the plugin, encode the response.

        Returns
        -------
        InvocationResult
            Never raises for bad input or plugin failures.
        """
        t0 = time.monotonic()
        logger.debug("%s plugin starting", self.plugin_name)

        # ---- Phase 1: decode ----
        self._transition(InvocationPhase.DECODING)
        try:
            message = decode(raw)
        except DecodeError as exc:
            return self._fail(str(exc), t0)
        logger.debug("Received %d source files", len(message.source_files))

        # ---- Phase 2: render ----
        self._transition(InvocationPhase.RENDERING)
        try:
            output = self._run_plugin(message)
        except Exception as exc:
            logger.exception("Plugin '%s' raised unexpectedly", self.plugin_name)
            return self._fail(f"plugin {self.plugin_name} failed: {exc}", t0)

        # ---- Phase 3: encode ----
        self._transition(InvocationPhase.ENCODING)
        try:
            payload = encode(output)
        except EncodeError as exc:
            return self._fail(str(exc), t0)

        self._transition(InvocationPhase.DONE)
        duration_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "%s plugin completed: %d rendered, %d errors, %s (%.0fms)",
            self.plugin_name,
            len(output.rendered_files),
            len(output.errors),
            "working set unchanged"
            if output.modified_source_files is None
            else f"{len(output.modified_source_files)} source files handed on",
            duration_ms,
        )
        return InvocationResult(
            status=STATUS_OK,
            payload=payload,
            output=output,
            phases=list(self._history),
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_plugin(self, message: InputMessage) -> OutputMessage:
        output = self._plugin(message, self.config)
        if not isinstance(output, OutputMessage):
            raise TypeError(
                f"plugin returned {type(output).__name__}, expected OutputMessage"
            )
        return output

    def _transition(self, target: InvocationPhase) -> None:
        current = self._phase
        if target not in _VALID_TRANSITIONS[current]:
            raise RuntimeError(
                f"Invalid invocation transition: {current.name} → {target.name}. "
                f"Allowed targets: {[p.name for p in _VALID_TRANSITIONS[current]]}"
            )
        logger.debug("Invocation: %s → %s", current.name, target.name)
        self._phase = target
        self._history.append(target)

    def _fail(self, message: str, t0: float) -> InvocationResult:
        logger.error(message)
        self._transition(InvocationPhase.FAILED)
        output = failure_output(message)
        return InvocationResult(
            status=STATUS_FATAL,
            payload=encode(output),
            output=output,
            phases=list(self._history),
            duration_ms=(time.monotonic() - t0) * 1000,
        )


def invoke(plugin_name: str, raw: bytes | str, config: RenderConfig | None = None) -> InvocationResult:
    """One-shot convenience wrapper around ``InvocationAgent``."""
    return InvocationAgent(plugin_name, config).invoke(raw)
