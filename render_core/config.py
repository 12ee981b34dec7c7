"""
config.py
=========
Render settings for one plugin invocation.

Defaults match what chart authors expect; every field can be overridden from
the environment (``RENDER_PLUGIN_<FIELD>``) or explicitly by the caller.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "RENDER_PLUGIN_"

DEFAULT_TEMPLATE_EXTENSIONS: tuple[str, ...] = (".yaml", ".yml", ".tpl", ".txt")


class RenderConfig(BaseSettings):
    """
    Immutable render settings.

    partial_prefix:
        Base-name prefix marking a file as a partial (registered, never rendered).
    template_extensions:
        Suffixes that make a non-partial file a primary template. Comma
        separated in the environment.
    max_workers:
        Thread count for primary-file rendering. ``1`` renders sequentially.
    max_include_depth:
        Maximum nesting of ``include``/``tpl`` calls before rendering fails.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, frozen=True, extra="ignore")

    partial_prefix: str = "_"
    template_extensions: Annotated[tuple[str, ...], NoDecode] = DEFAULT_TEMPLATE_EXTENSIONS
    max_workers: int = Field(default=1, ge=1)
    max_include_depth: int = Field(default=64, ge=1)

    @field_validator("template_extensions", mode="before")
    @classmethod
    def split_extensions(cls, v: Any) -> Any:
        if isinstance(v, str):
            return tuple(ext.strip() for ext in v.split(",") if ext.strip())
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> "RenderConfig":
        """
        Build a config from ``RENDER_PLUGIN_*`` environment variables.

        Keyword overrides whose value is not None win over the environment.
        Raises ``pydantic.ValidationError`` (a ``ValueError``) on bad values.
        """
        config = cls(**{k: v for k, v in overrides.items() if v is not None})
        logger.debug("Render config resolved: %s", config)
        return config
