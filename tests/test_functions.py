"""Tests for the template function library (called directly, no template engine)."""
import json

import pytest
import yaml
from jinja2 import ChainableUndefined

from render_core import functions as fn
from render_core.errors import RenderError


class TestDefaults:
    def test_default_falls_back_on_empty_string(self) -> None:
        assert fn.default("fallback", "") == "fallback"

    def test_default_falls_back_on_nil_and_undefined(self) -> None:
        assert fn.default("fallback", None) == "fallback"
        assert fn.default("fallback", ChainableUndefined()) == "fallback"

    def test_default_keeps_numeric_zero_and_false(self) -> None:
        assert fn.default("fallback", 0) == 0
        assert fn.default("fallback", False) is False

    def test_default_piped_form_matches_subject_first_examples(self) -> None:
        as_filter = fn.piped(fn.default)
        assert as_filter("", "fallback") == "fallback"
        assert as_filter(0, "fallback") == 0

    def test_required_passes_value_through(self) -> None:
        assert fn.required("need it", "x") == "x"
        assert fn.required("need it", 0) == 0

    @pytest.mark.parametrize("value", [None, "", ChainableUndefined()])
    def test_required_raises_with_message(self, value) -> None:
        with pytest.raises(RenderError, match="image.tag is required"):
            fn.required("image.tag is required", value)

    def test_ternary(self) -> None:
        assert fn.ternary("yes", "no", True) == "yes"
        assert fn.ternary("yes", "no", 0) == "no"

    @pytest.mark.parametrize("value", [None, "", [], {}, ChainableUndefined()])
    def test_empty_true(self, value) -> None:
        assert fn.empty(value) is True

    @pytest.mark.parametrize("value", [0, False, "x", [0], {"a": None}])
    def test_empty_false(self, value) -> None:
        assert fn.empty(value) is False

    def test_coalesce(self) -> None:
        assert fn.coalesce(None, "", 0, "x") == 0
        assert fn.coalesce(None, "") is None

    def test_fail(self) -> None:
        with pytest.raises(RenderError, match="stop"):
            fn.fail("stop")


class TestStructural:
    def test_to_yaml_emits_block_yaml(self) -> None:
        text = fn.to_yaml({"b": [1, 2], "a": {"x": "y"}})
        assert text == "a:\n  x: y\nb:\n- 1\n- 2"
        assert yaml.safe_load(text) == {"a": {"x": "y"}, "b": [1, 2]}
        assert not text.lstrip().startswith("{")

    def test_to_yaml_scalars(self) -> None:
        assert fn.to_yaml("abc") == "abc"
        assert fn.to_yaml(None) == "null"
        assert fn.to_yaml({}) == "{}"

    def test_to_json_is_compact_and_sorted(self) -> None:
        assert fn.to_json({"b": 1, "a": [True, None]}) == '{"a":[true,null],"b":1}'

    def test_to_pretty_json(self) -> None:
        text = fn.to_pretty_json({"a": 1})
        assert text == '{\n  "a": 1\n}'
        assert json.loads(text) == {"a": 1}

    def test_serialisers_reject_foreign_objects(self) -> None:
        with pytest.raises(RenderError, match="toYaml"):
            fn.to_yaml({"a": object()})
        with pytest.raises(RenderError, match="toJson"):
            fn.to_json([object()])

    def test_indent_skips_empty_lines(self) -> None:
        assert fn.indent(2, "a\n\nb") == "  a\n\n  b"

    def test_nindent_prepends_newline(self) -> None:
        assert fn.nindent(4, "a: 1\nb: 2") == "\n    a: 1\n    b: 2"

    def test_list_and_dict(self) -> None:
        assert fn.list_(1, "a", None) == [1, "a", None]
        assert fn.dict_("a", 1, "b", 2) == {"a": 1, "b": 2}

    def test_dict_drops_malformed_pairs_silently(self) -> None:
        assert fn.dict_("a", 1, 5, "lost", "dangling") == {"a": 1}
        assert fn.dict_("a", 1, "a", 2) == {"a": 2}


class TestStrings:
    def test_case_and_trim(self) -> None:
        assert fn.upper("abc") == "ABC"
        assert fn.lower("ABC") == "abc"
        assert fn.title("hello wide world") == "Hello Wide World"
        assert fn.trim("  x \n") == "x"

    def test_prefix_suffix(self) -> None:
        assert fn.trim_prefix("app-", "app-web") == "web"
        assert fn.trim_suffix(".yaml", "cm.yaml") == "cm"
        assert fn.has_prefix("app", "app-web") is True
        assert fn.has_suffix("web", "app-web") is True
        assert fn.contains("-", "app-web") is True

    def test_replace_repeat_join_split(self) -> None:
        assert fn.replace("-", "_", "a-b-c") == "a_b_c"
        assert fn.repeat(3, "ab") == "ababab"
        assert fn.join(",", ["a", 1, True]) == "a,1,true"
        assert fn.split(",", "a,b") == ["a", "b"]

    def test_quote_and_squote(self) -> None:
        assert fn.quote('say "hi"') == '"say \\"hi\\""'
        assert fn.squote("x") == "'x'"

    def test_undefined_becomes_empty_text(self) -> None:
        assert fn.upper(ChainableUndefined()) == ""
        assert fn.quote(None) == '""'


class TestPrintf:
    def test_common_verbs(self) -> None:
        assert fn.printf("%s-%d", "web", 3) == "web-3"
        assert fn.printf("%v %v", True, [1, 2]) == "true [1 2]"
        assert fn.printf("%q", "a") == '"a"'
        assert fn.printf("%.2f", 1.5) == "1.50"
        assert fn.printf("%x", 255) == "ff"
        assert fn.printf("100%%") == "100%"

    def test_width_and_flags(self) -> None:
        assert fn.printf("%5s|", "ab") == "   ab|"
        assert fn.printf("%-5s|", "ab") == "ab   |"
        assert fn.printf("%03d", 7) == "007"

    def test_missing_and_extra_arguments(self) -> None:
        assert fn.printf("%s %s", "a") == "a %!s(MISSING)"
        assert fn.printf("%s", "a", 1) == "a%!(EXTRA int=1)"

    def test_bad_verb_for_type(self) -> None:
        assert fn.printf("%d", "x") == "%!d(str=x)"


def test_install_registers_globals_and_piped_filters() -> None:
    class _Env:
        globals: dict = {}
        filters: dict = {}

    env = _Env()
    fn.install(env)
    assert env.globals["default"] is fn.default
    assert env.filters["trimPrefix"]("app-web", "app-") == "web"
    assert env.filters["indent"]("a", 2) == "  a"


def test_foreign_objects_are_not_rendered_as_text() -> None:
    with pytest.raises(RenderError, match="cannot render value of type object"):
        fn.finalize_output(object())
    assert fn.finalize_output([True, None, 1.0]) == "[true  1]"
