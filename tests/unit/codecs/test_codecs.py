"""
layered-config — unit tests for format codecs

File: tests/unit/codecs/test_codecs.py

Purpose
- Validate the YAML and TOML codecs and extension-based codec selection.

What this test file should cover
- ``decode(encode(x)) == x`` for fully-populated documents in each format.
- Documentation emitted as comment lines before each entry.
- Unsupported extensions and values a format cannot represent.

Functional requirements
- Offline, no filesystem access.

Non-functional requirements
- Deterministic encoding for identical input.
"""

from __future__ import annotations

from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from layered_config.codecs import (
    FormatCodec,
    TomlCodec,
    YamlCodec,
    codec_for_format,
    codec_for_path,
    resolve_codec,
    supported_extensions,
)
from layered_config.errors import DecodeError, EncodeError, UnsupportedFormatError
from layered_config.schema import REQUIRED

_KEYS = st.from_regex(r"[a-z][a-z0-9_]{0,6}", fullmatch=True)
_TEXT = st.text(alphabet=st.characters(min_codepoint=32, max_codepoint=126), max_size=20)
_SCALARS = st.one_of(
    st.booleans(),
    st.integers(min_value=-(2**63), max_value=2**63 - 1),
    st.floats(allow_nan=False),
    _TEXT,
)
_LISTS = st.one_of(
    st.lists(st.integers(min_value=-1000, max_value=1000), max_size=4),
    st.lists(_TEXT, max_size=4),
)
_DOCUMENTS = st.recursive(
    st.dictionaries(_KEYS, st.one_of(_SCALARS, _LISTS), max_size=5),
    lambda children: st.dictionaries(_KEYS, st.one_of(_SCALARS, _LISTS, children), max_size=5),
    max_leaves=20,
)

_DOCUMENT = {"port": 8080, "log": {"sink": "stderr", "tags": ["a", "b"]}, "debug": False}
_DOCS = {"port": "Listening port.\nMust be free.", "log": "Logging.", "log.sink": "Log sink."}


@pytest.mark.parametrize("codec", [YamlCodec(), TomlCodec()], ids=["yaml", "toml"])
def test_codecs_satisfy_the_protocol(codec: FormatCodec) -> None:
    assert isinstance(codec, FormatCodec)
    assert codec.decode(codec.encode(_DOCUMENT, _DOCS)) == _DOCUMENT


@settings(max_examples=75, deadline=None)
@given(document=_DOCUMENTS)
def test_yaml_round_trip(document: dict[str, Any]) -> None:
    codec = YamlCodec()
    assert codec.decode(codec.encode(document, {})) == document


@settings(max_examples=75, deadline=None)
@given(document=_DOCUMENTS)
def test_toml_round_trip(document: dict[str, Any]) -> None:
    codec = TomlCodec()
    assert codec.decode(codec.encode(document, {})) == document


def test_yaml_emits_docs_before_each_entry() -> None:
    text = YamlCodec().encode(_DOCUMENT, _DOCS, header="Generated.")

    assert text == (
        "# Generated.\n"
        "\n"
        "# Listening port.\n"
        "# Must be free.\n"
        "port: 8080\n"
        "# Logging.\n"
        "log:\n"
        "  # Log sink.\n"
        "  sink: stderr\n"
        "  tags:\n"
        "  - a\n"
        "  - b\n"
        "debug: false\n"
    )


def test_toml_emits_dotted_keys_with_docs() -> None:
    text = TomlCodec().encode(_DOCUMENT, _DOCS)

    assert text == (
        "# Listening port.\n"
        "# Must be free.\n"
        "port = 8080\n"
        "# Logging.\n"
        "# Log sink.\n"
        'log.sink = "stderr"\n'
        "log.tags = [\n"
        '    "a",\n'
        '    "b",\n'
        "]\n"
        "debug = false\n"
    )


def test_toml_quotes_keys_and_escapes_strings() -> None:
    codec = TomlCodec()
    document = {"odd key": "tab\there \"quoted\"", "del": "\x7f"}

    text = codec.encode(document, {})

    assert '"odd key" = ' in text
    assert "\\u007f" in text
    assert codec.decode(text) == document


def test_toml_rejects_null_values() -> None:
    with pytest.raises(EncodeError, match="log.sink: TOML cannot represent null values"):
        TomlCodec().encode({"log": {"sink": None}}, {})


def test_yaml_decode_rejects_non_mapping_roots_and_bad_syntax() -> None:
    codec = YamlCodec()

    assert codec.decode("") == {}
    with pytest.raises(DecodeError, match="config root must be a mapping, got list"):
        codec.decode("- 1\n- 2\n")
    with pytest.raises(DecodeError, match="invalid YAML"):
        codec.decode("a: [1\n")


def test_toml_decode_reports_bad_syntax() -> None:
    with pytest.raises(DecodeError, match="invalid TOML"):
        TomlCodec().decode("a = \n")


@pytest.mark.parametrize(
    ("path", "expected"),
    [("app.yaml", "yaml"), ("app.YML", "yaml"), ("dir.d/app.toml", "toml")],
)
def test_codec_for_path_selects_by_extension(path: str, expected: str) -> None:
    assert codec_for_path(path).name == expected


def test_unknown_extensions_list_supported_ones() -> None:
    assert supported_extensions() == (".yaml", ".yml", ".toml")

    with pytest.raises(UnsupportedFormatError) as excinfo:
        codec_for_path("app.ron")
    assert "'.ron'" in str(excinfo.value)
    assert "'.yaml', '.yml', '.toml'" in str(excinfo.value)

    with pytest.raises(UnsupportedFormatError, match="has no extension"):
        codec_for_path("app")


def test_codec_for_format_accepts_aliases() -> None:
    assert codec_for_format("YML").name == "yaml"
    assert codec_for_format(".toml").name == "toml"
    assert resolve_codec("ignored.ini", "yaml").name == "yaml"

    with pytest.raises(UnsupportedFormatError, match="supported formats are 'toml', 'yaml'"):
        codec_for_format("ini")


def test_yaml_keeps_placeholder_only_sections_as_mappings() -> None:
    codec = YamlCodec()
    document = {"db": {"password": REQUIRED, "replica": {"host": REQUIRED}}, "port": 1}

    text = codec.encode(document, {"db.password": "Database password."})

    assert text == (
        "db: {}\n"
        "  # Database password.\n"
        "  # password: <required>\n"
        "  # replica:\n"
        "    # host: <required>\n"
        "port: 1\n"
    )
    assert codec.decode(text) == {"db": {}, "port": 1}


def test_toml_renders_empty_sections_inline() -> None:
    codec = TomlCodec()
    document = {"db": {}, "log": {"sink": "file", "extra": {}}}

    text = codec.encode(document, {})

    assert "db = {}\n" in text
    assert "log.extra = {}\n" in text
    assert codec.decode(text) == document
