"""Tests for the render/v1 envelope codec."""
import json

import pytest

from render_core.errors import DecodeError
from render_core.messages import (
    InputMessage,
    OutputMessage,
    SourceFile,
    decode,
    encode,
    failure_output,
)


def test_decode_full_envelope(make_raw) -> None:
    raw = make_raw(
        source_files=[("templates/cm.yaml", "kind: ConfigMap\n")],
        values={"replicas": 3, "image": {"tag": "1.0"}},
        files=[("config/app.conf", "a=b")],
    )
    message = decode(raw)

    assert message.release.name == "my-release"
    assert message.release.is_install is True
    assert message.chart.app_version == "1.2.3"
    assert message.capabilities.kube_version.minor == "30"
    assert message.capabilities.api_versions == ["v1", "apps/v1"]
    assert message.values["image"]["tag"] == "1.0"
    assert message.source_files[0].name == "templates/cm.yaml"
    assert message.source_files[0].data == b"kind: ConfigMap\n"
    assert message.files[0].text == "a=b"


def test_decode_accepts_partial_envelope_with_zero_values() -> None:
    message = decode(b'{"sourceFiles": [{"name": "a.yaml", "data": null}], "extra": 1}')
    assert message.release.name == ""
    assert message.release.revision == 0
    assert message.values == {}
    assert message.source_files[0].data == b""


def test_decode_null_fields_become_empty() -> None:
    message = decode(b'{"values": null, "sourceFiles": null, "files": null}')
    assert message.values == {}
    assert message.source_files == []
    assert message.files == []


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"   ",
        b'{"release": {"name": "x"',
        b"not json",
        b"[1, 2]",
        b'"text"',
        b'{"release": {"revision": "not-a-number"}}',
        b'{"sourceFiles": [{"name": "a", "data": "***"}]}',
        b"\xff\xfe",
    ],
)
def test_decode_rejects_malformed_envelopes(raw) -> None:
    with pytest.raises(DecodeError) as excinfo:
        decode(raw)
    assert str(excinfo.value).startswith("failed to parse input")


def test_source_file_is_immutable() -> None:
    source = SourceFile(name="a.yaml", data=b"x")
    with pytest.raises(Exception):
        source.name = "b.yaml"


def test_encode_omits_modified_source_files_when_none() -> None:
    document = json.loads(encode(OutputMessage(rendered_files={"a.yaml": "x"})))
    assert document == {"renderedFiles": {"a.yaml": "x"}}


def test_encode_keeps_explicit_empty_modified_source_files() -> None:
    document = json.loads(encode(OutputMessage(modified_source_files=[])))
    assert document["modifiedSourceFiles"] == []
    assert document["renderedFiles"] == {}
    assert "errors" not in document


def test_encode_base64_source_files_and_errors() -> None:
    output = OutputMessage(
        modified_source_files=[SourceFile(name="b.yaml", data=b"hello")],
        errors=["first", "second"],
    )
    document = json.loads(encode(output))
    assert document["modifiedSourceFiles"] == [{"name": "b.yaml", "data": "aGVsbG8="}]
    assert document["errors"] == ["first", "second"]


def test_encoded_source_files_decode_back() -> None:
    output = OutputMessage(modified_source_files=[SourceFile(name="x.tpl", data=b"\x00\x01bin")])
    document = json.loads(encode(output))
    message = InputMessage.model_validate({"sourceFiles": document["modifiedSourceFiles"]})
    assert message.source_files[0].data == b"\x00\x01bin"


def test_failure_output_shape() -> None:
    document = json.loads(encode(failure_output("boom")))
    assert document == {"renderedFiles": {}, "errors": ["boom"]}


@pytest.mark.parametrize(
    "raw",
    [
        b"[" * 100_000 + b"]" * 100_000,
        b'{"values": {"a": ' + b"[" * 100_000 + b"]" * 100_000 + b"}}",
    ],
)
def test_decode_rejects_excessive_nesting(raw) -> None:
    with pytest.raises(DecodeError, match="failed to parse input"):
        decode(raw)


def test_decode_accepts_line_wrapped_base64() -> None:
    message = decode(b'{"sourceFiles": [{"name": "a.yaml", "data": "aGVs\\r\\nbG8=\\n"}]}')
    assert message.source_files[0].data == b"hello"


def test_encode_replaces_lone_surrogates() -> None:
    payload = encode(OutputMessage(rendered_files={"a.yaml": "x: \ud800!"}))
    assert json.loads(payload) == {"renderedFiles": {"a.yaml": "x: �!"}}
