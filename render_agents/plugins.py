"""
plugins.py
==========
Built-in render/v1 plugins and the registry that names them.

Each plugin is a plain function ``(InputMessage, RenderConfig) -> OutputMessage``.
Plugins report per-file problems in ``OutputMessage.errors``; anything they
raise is treated as a fatal plugin failure by the invocation agent.

- ``template``             : two-pass template compiler over ``sourceFiles``.
- ``sourcefiles-modifier`` : rewrites the working set for the next plugin.
- ``test-processor``       : reports exactly which files it received.
- ``varsubst``             : ``${...}`` substitution for ``.pkl`` files.
- ``echo``                 : echoes ``.echo`` files with a release header.
- ``fallback``             : renders a marker ConfigMap for ``.fallback`` files.
"""

from __future__ import annotations

import logging
from typing import Callable

from render_core.compiler import TemplateCompiler
from render_core.config import RenderConfig
from render_core.functions import printf
from render_core.messages import InputMessage, OutputMessage
from render_core.transform import FileTransform

logger = logging.getLogger(__name__)

PluginFunc = Callable[[InputMessage, RenderConfig], OutputMessage]

_REGISTRY: dict[str, PluginFunc] = {}


def register(name: str) -> Callable[[PluginFunc], PluginFunc]:
    def decorator(func: PluginFunc) -> PluginFunc:
        if name in _REGISTRY:
            raise ValueError(f"plugin '{name}' is already registered")
        _REGISTRY[name] = func
        return func

    return decorator


def get_plugin(name: str) -> PluginFunc:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise KeyError(
            f"unknown plugin '{name}'. Available: {', '.join(available_plugins())}"
        ) from None


def available_plugins() -> list[str]:
    return sorted(_REGISTRY)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _bullets(items: list[str]) -> str:
    return "".join(f"    - {item}\n" for item in items)


def _indent_block(content: str) -> str:
    return "".join(f"    {line}\n" for line in content.split("\n"))


def _k8s_name(path: str) -> str:
    return path.replace("/", "-").replace(".", "-").removeprefix("templates-")


# ---------------------------------------------------------------------------
# template
# ---------------------------------------------------------------------------


@register("template")
def template_render(message: InputMessage, config: RenderConfig) -> OutputMessage:
    return TemplateCompiler(config).render(message).to_output()


# ---------------------------------------------------------------------------
# sourcefiles-modifier
# ---------------------------------------------------------------------------

MODIFIED_MARKER = b"[MODIFIED BY PLUGIN 1]\n"
ADDED_FILE_NAME = "templates/file4.test"
ADDED_FILE_CONTENT = "# This file was added by sourcefiles-modifier plugin\nkey: added-by-plugin-1"


@register("sourcefiles-modifier")
def sourcefiles_modifier(message: InputMessage, config: RenderConfig) -> OutputMessage:
    """
    Drop the first file, mark the second, rename the third (``.test`` →
    ``.renamed``), pass the rest, and append one new file.
    """
    transform = FileTransform(message.source_files)
    for index, source in enumerate(transform.received[:3]):
        if index == 0:
            transform.delete(index)
        elif index == 1:
            transform.rewrite(index, MODIFIED_MARKER + source.data)
        else:
            transform.rename(index, source.name.removesuffix(".test") + ".renamed")
    transform.append(ADDED_FILE_NAME, ADDED_FILE_CONTENT)
    result = transform.apply()

    summary = f"""\
# SourceFiles Modifier Plugin Summary
# This manifest documents the modifications made to source files
apiVersion: v1
kind: ConfigMap
metadata:
  name: sourcefiles-modifier-summary
data:
  actions: |
{_bullets([r.describe() for r in result.records])}
  filesReceived: "{len(message.source_files)}"
  filesOutput: "{len(result.files)}"
"""
    logger.info(
        "sourcefiles-modifier: %d files in, %d files out",
        len(message.source_files),
        len(result.files),
    )
    return OutputMessage(
        rendered_files={"sourcefiles-modifier-summary.yaml": summary},
        modified_source_files=result.files,
    )


# ---------------------------------------------------------------------------
# test-processor
# ---------------------------------------------------------------------------


@register("test-processor")
def test_processor(message: InputMessage, config: RenderConfig) -> OutputMessage:
    rendered: dict[str, str] = {}
    received: list[str] = []

    for source in message.source_files:
        logger.debug("Processing file: %s", source.name)
        received.append(source.name)
        rendered[source.name.removesuffix(".test") + ".yaml"] = f"""\
# Rendered by test-processor plugin
# Original file: {source.name}
apiVersion: v1
kind: ConfigMap
metadata:
  name: {_k8s_name(source.name)}
data:
  originalContent: |
{_indent_block(source.text)}
"""

    rendered["test-processor-summary.yaml"] = f"""\
# Test Processor Plugin Summary
# Documents what files were received from the previous plugin
apiVersion: v1
kind: ConfigMap
metadata:
  name: test-processor-summary
data:
  filesReceived: "{len(message.source_files)}"
  fileList: |
{_bullets(received)}
"""
    return OutputMessage(rendered_files=rendered)


# Not a pytest test despite the name.
test_processor.__test__ = False


# ---------------------------------------------------------------------------
# varsubst
# ---------------------------------------------------------------------------


def _substitutions(message: InputMessage) -> dict[str, str]:
    table = {
        "${release.name}": message.release.name,
        "${release.namespace}": message.release.namespace,
        "${chart.name}": message.chart.name,
        "${chart.version}": message.chart.version,
    }
    values = message.values
    if "replicas" in values:
        table["${values.replicas}"] = printf("%v", values["replicas"])
    image = values.get("image")
    if isinstance(image, dict):
        for key in ("repository", "tag"):
            if key in image:
                table[f"${{values.image.{key}}}"] = printf("%v", image[key])
    return table


@register("varsubst")
def varsubst_render(message: InputMessage, config: RenderConfig) -> OutputMessage:
    table = _substitutions(message)
    rendered: dict[str, str] = {}
    for source in message.source_files:
        if not source.name.endswith(".pkl"):
            continue
        content = source.text
        for placeholder, value in table.items():
            content = content.replace(placeholder, value)
        rendered[source.name.removesuffix(".pkl") + ".yaml"] = content
    return OutputMessage(rendered_files=rendered)


# ---------------------------------------------------------------------------
# echo
# ---------------------------------------------------------------------------


@register("echo")
def echo_render(message: InputMessage, config: RenderConfig) -> OutputMessage:
    release_name = message.release.name or "unknown"
    rendered = {
        source.name.removesuffix(".echo") + ".yaml": (
            "# Rendered by echo-render plugin\n"
            f"# Release: {release_name}\n"
            f"{source.text}"
        )
        for source in message.source_files
    }
    return OutputMessage(rendered_files=rendered)


# ---------------------------------------------------------------------------
# fallback
# ---------------------------------------------------------------------------


@register("fallback")
def fallback_render(message: InputMessage, config: RenderConfig) -> OutputMessage:
    rendered: dict[str, str] = {}
    for source in message.source_files:
        if not source.name.endswith(".fallback"):
            continue
        # One output name for every input: the last file wins.
        rendered["fallback-test-result.yaml"] = f"""\
# Rendered by fallback plugin
# This proves the globally installed plugin was loaded
apiVersion: v1
kind: ConfigMap
metadata:
  name: fallback-test-result
data:
  plugin: "fallback"
  fallbackWorked: "true"
  sourceFile: "{source.name}"
  originalContent: |
    {source.text}
"""
    return OutputMessage(rendered_files=rendered)
