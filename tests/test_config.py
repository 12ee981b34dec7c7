"""Tests for RenderConfig."""
import pytest
from pydantic import ValidationError

from render_core.config import DEFAULT_TEMPLATE_EXTENSIONS, RenderConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("TEMPLATE_EXTENSIONS", "MAX_WORKERS", "MAX_INCLUDE_DEPTH", "PARTIAL_PREFIX"):
        monkeypatch.delenv(f"RENDER_PLUGIN_{key}", raising=False)


def test_defaults() -> None:
    config = RenderConfig.from_env()
    assert config.partial_prefix == "_"
    assert config.template_extensions == DEFAULT_TEMPLATE_EXTENSIONS
    assert config.max_workers == 1
    assert config.max_include_depth == 64


def test_environment_values(monkeypatch) -> None:
    monkeypatch.setenv("RENDER_PLUGIN_TEMPLATE_EXTENSIONS", ".yaml, .j2,")
    monkeypatch.setenv("RENDER_PLUGIN_MAX_WORKERS", "4")
    monkeypatch.setenv("RENDER_PLUGIN_MAX_INCLUDE_DEPTH", "10")

    config = RenderConfig.from_env()
    assert config.template_extensions == (".yaml", ".j2")
    assert config.max_workers == 4
    assert config.max_include_depth == 10


def test_explicit_overrides_win_unless_none(monkeypatch) -> None:
    monkeypatch.setenv("RENDER_PLUGIN_MAX_WORKERS", "4")
    assert RenderConfig.from_env(max_workers=2).max_workers == 2
    assert RenderConfig.from_env(max_workers=None).max_workers == 4


def test_invalid_integer(monkeypatch) -> None:
    monkeypatch.setenv("RENDER_PLUGIN_MAX_WORKERS", "many")
    with pytest.raises(ValueError, match="max_workers"):
        RenderConfig.from_env()


@pytest.mark.parametrize("field", ["max_workers", "max_include_depth"])
def test_rejects_values_below_one(field) -> None:
    with pytest.raises(ValidationError):
        RenderConfig(**{field: 0})


def test_config_is_frozen() -> None:
    config = RenderConfig()
    with pytest.raises(ValidationError):
        config.max_workers = 3
