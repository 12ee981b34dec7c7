"""
compiler.py
===========
Two-pass template compiler.

Pass 1 registers every named fragment found in partial files (base name
starting with ``_``) into a mutable ``NamespaceBuilder``. The builder is then
frozen into an immutable ``CompiledNamespace``; nothing in Pass 2 starts before
that happens.

Pass 2 renders each primary file against its own ``NamespaceView`` derived
from the frozen namespace. Defines found in a primary file land in that view
only, so sibling files never see each other's fragments. ``include`` and
``tpl`` are ``Capabilities`` bound to the view and injected into the
execution scope.

Template dialect: sandboxed Jinja2 plus a ``define`` tag::

    {% define "app.labels" %}app: {{ Chart.Name }}{% enddefine %}
    {{ include("app.labels", dot) }}

Author: Render Plugin Architect
"""

from __future__ import annotations

import logging
import posixpath
from collections import ChainMap
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator

from jinja2 import ChainableUndefined, Template, TemplateSyntaxError, nodes
from jinja2.ext import Extension
from jinja2.sandbox import ImmutableSandboxedEnvironment

from .config import RenderConfig
from .errors import CompileError, ExecutionError, RenderError
from .files import Files
from .functions import finalize_output, install
from .messages import InputMessage, OutputMessage, SourceFile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# The define tag
# ---------------------------------------------------------------------------


class DefineExtension(Extension):
    """
    ``{% define "name" %}...{% enddefine %}`` marks a named fragment.

    In place, the tag renders nothing. The compiler finds the marker nodes in
    the parsed tree and compiles each body into its own template.
    """

    tags = {"define"}

    def parse(self, parser):
        lineno = next(parser.stream).lineno
        name = parser.parse_expression()
        if not (isinstance(name, nodes.Const) and isinstance(name.value, str)):
            parser.fail("define expects a quoted template name", lineno)
        body = parser.parse_statements(("name:enddefine",), drop_needle=True)
        return nodes.CallBlock(
            self.call_method("_definition_marker", [name]), [], [], body
        ).set_lineno(lineno)

    def _definition_marker(self, name: str, caller) -> str:
        return ""


def _find_definitions(tree: nodes.Template) -> Iterator[tuple[str, list[nodes.Node]]]:
    for block in tree.find_all(nodes.CallBlock):
        target = block.call.node
        if (
            isinstance(target, nodes.ExtensionAttribute)
            and target.identifier == DefineExtension.identifier
        ):
            yield block.call.args[0].value, block.body


def create_environment() -> ImmutableSandboxedEnvironment:
    """A fresh sandboxed environment with the define tag and the function library."""
    environment = ImmutableSandboxedEnvironment(
        extensions=[DefineExtension],
        undefined=ChainableUndefined,
        keep_trailing_newline=True,
        autoescape=False,
        finalize=finalize_output,
    )
    install(environment)
    return environment


# ---------------------------------------------------------------------------
# Compilation units
# ---------------------------------------------------------------------------


@dataclass
class CompiledSource:
    """One parsed file: its own template plus the fragments it defines (in order)."""

    name: str
    template: Template
    definitions: dict[str, Template] = field(default_factory=dict)


def _from_tree(environment, tree: nodes.Template, name: str, filename: str) -> Template:
    code = environment.compile(tree, name=name, filename=filename)
    return environment.template_class.from_code(environment, code, environment.make_globals(None))


def compile_source(environment, text: str, name: str) -> CompiledSource:
    """
    Parse *text* once and compile the whole file plus each define body.

    Raises
    ------
    CompileError
        On any syntax or compile-time assertion failure. Nothing from the
        file is usable in that case.
    """
    try:
        tree = environment.parse(text, name=name, filename=name)
        definitions: dict[str, Template] = {}
        for def_name, body in _find_definitions(tree):
            fragment = nodes.Template(body, lineno=1).set_environment(environment)
            definitions[def_name] = _from_tree(environment, fragment, def_name, name)
        template = _from_tree(environment, tree, name, name)
    except TemplateSyntaxError as exc:
        detail = f"line {exc.lineno}: {exc.message}" if exc.lineno else str(exc.message)
        raise CompileError(name, detail) from exc
    return CompiledSource(name=name, template=template, definitions=definitions)


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------


class NamespaceView(Mapping):
    """
    Execution-local view of a frozen namespace.

    Lookups fall through to the shared fragments; ``register`` only ever
    writes to this view's own layer.
    """

    def __init__(self, environment, layers: ChainMap) -> None:
        self.environment = environment
        self._layers = layers

    def __getitem__(self, name: str) -> Template:
        return self._layers[name]

    def __iter__(self):
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def register(self, compiled: CompiledSource) -> None:
        local = self._layers.maps[0]
        local[compiled.name] = compiled.template
        local.update(compiled.definitions)

    def derive(self) -> "NamespaceView":
        return NamespaceView(self.environment, self._layers.new_child())


class CompiledNamespace(Mapping):
    """Immutable result of Pass 1. Safe to share between threads."""

    def __init__(self, environment, fragments: Mapping[str, Template]) -> None:
        self.environment = environment
        self._fragments = MappingProxyType(dict(fragments))

    def __getitem__(self, name: str) -> Template:
        return self._fragments[name]

    def __iter__(self):
        return iter(self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def derive(self) -> NamespaceView:
        return NamespaceView(self.environment, ChainMap({}, self._fragments))


class NamespaceBuilder:
    """
    Mutable Pass 1 context. Single writer, input order, later names overwrite
    earlier ones.
    """

    def __init__(self, environment) -> None:
        self.environment = environment
        self._fragments: dict[str, Template] = {}
        self._frozen = False

    def register(self, source: SourceFile) -> CompiledSource:
        if self._frozen:
            raise RuntimeError("namespace is frozen; no further registrations allowed")
        compiled = compile_source(self.environment, source.text, source.name)
        for name, template in [(compiled.name, compiled.template), *compiled.definitions.items()]:
            if name in self._fragments:
                logger.debug("Template '%s' redefined by %s; later definition wins.", name, source.name)
            self._fragments[name] = template
        return compiled

    def freeze(self) -> CompiledNamespace:
        self._frozen = True
        return CompiledNamespace(self.environment, self._fragments)


# ---------------------------------------------------------------------------
# include / tpl
# ---------------------------------------------------------------------------


class _DepthGuard:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.depth = 0

    @contextmanager
    def enter(self, name: str):
        if self.depth >= self.limit:
            raise RenderError(
                f"rendering template has a nested reference name: {name}: "
                f"exceeded max include depth {self.limit}"
            )
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1


class Capabilities:
    """``include`` and ``tpl`` bound to one namespace view."""

    def __init__(self, view: NamespaceView, guard: _DepthGuard) -> None:
        self._view = view
        self._guard = guard

    @classmethod
    def bind(cls, view: NamespaceView, max_depth: int) -> "Capabilities":
        return cls(view, _DepthGuard(max_depth))

    def scope(self, data: Any) -> dict[str, Any]:
        """Execution scope for *data*: its keys as names, itself as ``dot``, plus the capabilities."""
        scope = dict(data) if isinstance(data, Mapping) else {}
        scope["dot"] = data
        scope["include"] = self.include
        scope["tpl"] = self.tpl
        return scope

    def include(self, name: Any, data: Any = None) -> str:
        name = str(name)
        try:
            template = self._view[name]
        except KeyError:
            raise RenderError(f'no template "{name}" associated with template') from None
        with self._guard.enter(name):
            return template.render(self.scope(data))

    def tpl(self, raw: Any, data: Any = None) -> str:
        view = self._view.derive()
        try:
            compiled = compile_source(view.environment, "" if raw is None else str(raw), "tpl")
        except CompileError as exc:
            raise RenderError(f"tpl: {exc.detail}") from exc
        view.register(compiled)
        with self._guard.enter("tpl"):
            return compiled.template.render(Capabilities(view, self._guard).scope(data))


# ---------------------------------------------------------------------------
# Render context
# ---------------------------------------------------------------------------


def build_context(message: InputMessage, files: Files, source_name: str) -> dict[str, Any]:
    """The root data a primary template sees, keyed the way chart templates expect."""
    release, chart, caps = message.release, message.chart, message.capabilities
    kube = caps.kube_version
    return {
        "Release": {
            "Name": release.name,
            "Namespace": release.namespace,
            "Revision": release.revision,
            "IsInstall": release.is_install,
            "IsUpgrade": release.is_upgrade,
            "Service": release.service,
        },
        "Values": message.values,
        "Chart": {
            "Name": chart.name,
            "Version": chart.version,
            "AppVersion": chart.app_version or "",
            "Description": chart.description or "",
            "Type": chart.type or "",
            "IsRoot": chart.is_root,
        },
        "Subcharts": message.subcharts,
        "Files": files,
        "Capabilities": {
            "KubeVersion": {
                **(kube.model_extra or {}),
                "Version": kube.version,
                "Major": kube.major,
                "Minor": kube.minor,
            },
            "APIVersions": list(caps.api_versions),
            "HelmVersion": caps.helm_version,
        },
        "Template": {
            "Name": source_name,
            "BasePath": posixpath.dirname(source_name),
        },
    }


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass
class RenderResult:
    """Aggregate result of one compiler run."""

    rendered_files: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    fragment_names: list[str] = field(default_factory=list)
    blank_files: list[str] = field(default_factory=list)

    def to_output(self) -> OutputMessage:
        return OutputMessage(rendered_files=dict(self.rendered_files), errors=list(self.errors))


@dataclass
class _PrimaryOutcome:
    name: str
    text: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Main compiler class
# ---------------------------------------------------------------------------


class TemplateCompiler:
    """
    Renders a message's ``sourceFiles`` into ``RenderedFiles``.

    Usage
    -----
    ::

        message = decode(raw)
        result = TemplateCompiler(RenderConfig()).render(message)
        output = result.to_output()
    """

    def __init__(self, config: RenderConfig | None = None) -> None:
        self.config = config or RenderConfig()
        self.environment = create_environment()

    def is_partial(self, name: str) -> bool:
        return posixpath.basename(name).startswith(self.config.partial_prefix)

    def is_primary(self, name: str) -> bool:
        return not self.is_partial(name) and name.endswith(tuple(self.config.template_extensions))

    # ------------------------------------------------------------------
    # Pass 1
    # ------------------------------------------------------------------

    def build_namespace(self, source_files: list[SourceFile]) -> tuple[CompiledNamespace, list[str]]:
        """Register every partial in input order and freeze the result."""
        builder = NamespaceBuilder(self.environment)
        errors: list[str] = []
        for source in source_files:
            if not self.is_partial(source.name):
                continue
            try:
                compiled = builder.register(source)
            except CompileError as exc:
                logger.warning("Partial %s failed to parse: %s", source.name, exc.detail)
                errors.append(str(exc))
                continue
            logger.debug(
                "Registered partial %s (%d fragments)", source.name, len(compiled.definitions)
            )
        return builder.freeze(), errors

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def render_primary(
        self,
        namespace: CompiledNamespace,
        source: SourceFile,
        message: InputMessage,
        files: Files,
    ) -> _PrimaryOutcome:
        logger.debug("Rendering template: %s", source.name)
        view = namespace.derive()
        try:
            compiled = compile_source(view.environment, source.text, source.name)
        except CompileError as exc:
            return _PrimaryOutcome(source.name, error=str(exc))
        view.register(compiled)

        capabilities = Capabilities.bind(view, self.config.max_include_depth)
        context = build_context(message, files, source.name)
        try:
            text = compiled.template.render(capabilities.scope(context))
        except Exception as exc:
            logger.debug("Execution of %s failed", source.name, exc_info=True)
            return _PrimaryOutcome(source.name, error=str(ExecutionError(source.name, exc)))
        return _PrimaryOutcome(source.name, text=text)

    def render(self, message: InputMessage) -> RenderResult:
        source_files = list(message.source_files)
        namespace, errors = self.build_namespace(source_files)
        result = RenderResult(errors=errors, fragment_names=sorted(namespace))

        files = Files(message.files)
        primaries = [f for f in source_files if self.is_primary(f.name)]
        logger.info(
            "Rendering %d primary templates against %d registered fragments.",
            len(primaries),
            len(namespace),
        )

        def run(source: SourceFile) -> _PrimaryOutcome:
            return self.render_primary(namespace, source, message, files)

        if self.config.max_workers > 1 and len(primaries) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                outcomes = list(pool.map(run, primaries))
        else:
            outcomes = [run(source) for source in primaries]

        # Collected in input order so parallel and sequential runs agree.
        for outcome in outcomes:
            if outcome.error is not None:
                logger.warning("%s", outcome.error)
                result.errors.append(outcome.error)
            elif not outcome.text.strip():
                logger.debug("Template %s rendered only whitespace; not emitted.", outcome.name)
                result.blank_files.append(outcome.name)
            else:
                result.rendered_files[outcome.name] = outcome.text

        logger.info(
            "Render complete: %d files emitted, %d errors.",
            len(result.rendered_files),
            len(result.errors),
        )
        return result
