"""render_core: render/v1 message codec, template compiler and file transforms."""
from .compiler import CompiledNamespace, NamespaceBuilder, RenderResult, TemplateCompiler
from .config import RenderConfig
from .errors import CompileError, DecodeError, EncodeError, ExecutionError, PluginError, RenderError
from .messages import InputMessage, OutputMessage, SourceFile, decode, encode, failure_output
from .transform import FileTransform, TransformResult, merge_rendered_files, next_source_files

__all__ = [
    "CompiledNamespace", "NamespaceBuilder", "RenderResult", "TemplateCompiler",
    "RenderConfig",
    "CompileError", "DecodeError", "EncodeError", "ExecutionError", "PluginError", "RenderError",
    "InputMessage", "OutputMessage", "SourceFile", "decode", "encode", "failure_output",
    "FileTransform", "TransformResult", "merge_rendered_files", "next_source_files",
]
