"""render_agents: invocation orchestration and the built-in render/v1 plugins."""
from .invocation import InvocationAgent, InvocationPhase, InvocationResult, invoke
from .plugins import available_plugins, get_plugin, register

__all__ = [
    "InvocationAgent", "InvocationPhase", "InvocationResult", "invoke",
    "available_plugins", "get_plugin", "register",
]
