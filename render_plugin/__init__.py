"""render_plugin: command-line entry point for render/v1 plugins."""
