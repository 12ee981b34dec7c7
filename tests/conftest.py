"""Shared fixtures: build render/v1 requests without hand-writing base64."""
import base64
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from render_core.messages import InputMessage  # noqa: E402


def wire_file(name, content):
    data = content.encode("utf-8") if isinstance(content, str) else content
    return {"name": name, "data": base64.b64encode(data).decode("ascii")}


def build_request(source_files=(), values=None, files=(), **extra):
    """A JSON-ready request dict. *source_files*/*files* are (name, content) pairs."""
    document = {
        "release": {
            "name": "my-release",
            "namespace": "default",
            "revision": 1,
            "isInstall": True,
            "isUpgrade": False,
            "service": "Helm",
        },
        "values": values if values is not None else {},
        "chart": {"name": "demo", "version": "0.1.0", "appVersion": "1.2.3", "isRoot": True},
        "subcharts": {},
        "files": [wire_file(n, c) for n, c in files],
        "capabilities": {
            "kubeVersion": {"version": "v1.30.0", "major": "1", "minor": "30"},
            "apiVersions": ["v1", "apps/v1"],
            "helmVersion": "v4.0.0",
        },
        "sourceFiles": [wire_file(n, c) for n, c in source_files],
    }
    document.update(extra)
    return document


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def make_raw():
    def _make(*args, **kwargs):
        return json.dumps(build_request(*args, **kwargs)).encode("utf-8")

    return _make


@pytest.fixture
def make_message():
    def _make(*args, **kwargs):
        return InputMessage.model_validate(build_request(*args, **kwargs))

    return _make
