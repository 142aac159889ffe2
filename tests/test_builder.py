"""
Tests for ClosureCompiler request building: code accumulation, rewriting,
options and the immutable request snapshot.
"""

import re
from urllib.parse import parse_qs, urlencode

import pytest

from closure import ClosureCompiler, CompileRequest


class TestAppendCode:
    """Tests for append_code / append_file / append_files."""

    def test_append_code(self):
        assert ClosureCompiler().append_code("foo").source_code == "foo"

    def test_append_more_code(self):
        gcc = ClosureCompiler()
        gcc.append_code("foo")
        gcc.append_code("bar")
        assert gcc.source_code == "foobar"

    def test_chains(self):
        assert ClosureCompiler().append_code("foo").append_code("bar").source_code == "foobar"

    def test_append_file(self, sources):
        gcc = ClosureCompiler().append_file(sources["foo"])
        assert gcc.source_code == "var foo = 1;\n"

    def test_append_files_in_order(self, sources):
        gcc = ClosureCompiler().append_files(sources["foo"], sources["bar"]).append_files(sources["baz"])
        assert gcc.source_code == "var foo = 1;\nvar bar = 1;\nvar baz = 1;\n"

    def test_grouping_does_not_matter(self, sources):
        """Concatenation is the same however the appends are grouped."""
        one = ClosureCompiler().append_files(sources["foo"], sources["bar"]).append_code("x")
        two = (
            ClosureCompiler()
            .append_file(sources["foo"])
            .append_code(sources["bar"].read_text())
            .append_code("x")
        )
        assert one.source_code == two.source_code

    def test_append_file_accepts_str_path(self, sources):
        assert "foo" in ClosureCompiler().append_file(str(sources["foo"])).source_code

    def test_append_file_preserves_line_endings(self, tmp_path):
        path = tmp_path / "crlf.js"
        path.write_bytes(b"var a;\r\nvar b;\r\n")
        assert ClosureCompiler().append_file(path).source_code == "var a;\r\nvar b;\r\n"

    def test_non_utf8_file_is_decoded_leniently(self, tmp_path):
        path = tmp_path / "latin1.js"
        path.write_bytes(b"var s = '\xe9';\n")
        gcc = ClosureCompiler().append_file(path).append_code("var t;")
        assert gcc.source_code == "var s = '\ufffd';\nvar t;"

    def test_missing_file_raises_immediately(self, tmp_path):
        gcc = ClosureCompiler().append_code("keep")
        with pytest.raises(OSError):
            gcc.append_file(tmp_path / "missing.js")
        assert gcc.source_code == "keep"

    def test_append_files_stops_at_missing_file(self, sources, tmp_path):
        gcc = ClosureCompiler()
        with pytest.raises(FileNotFoundError):
            gcc.append_files(sources["foo"], tmp_path / "missing.js", sources["bar"])
        assert gcc.source_code == "var foo = 1;\n"


class TestReplaceCode:
    """Tests for replace_code."""

    def test_literal_replaces_first_match(self):
        gcc = ClosureCompiler().append_code("foofoo").replace_code("foo", "bar")
        assert gcc.source_code == "barfoo"

    def test_literal_count_zero_replaces_all(self):
        gcc = ClosureCompiler().append_code("foofoo").replace_code("foo", "bar", count=0)
        assert gcc.source_code == "barbar"

    def test_regex_replaces_first_match(self):
        gcc = ClosureCompiler().append_code("foofoo").replace_code(re.compile("foo"), "bar")
        assert gcc.source_code == "barfoo"

    def test_regex_global(self):
        gcc = ClosureCompiler().append_code("foofoo").replace_code(re.compile("foo"), "bar", count=0)
        assert gcc.source_code == "barbar"

    def test_chained_replacements_apply_left_to_right(self):
        gcc = (
            ClosureCompiler()
            .append_code("foofoo")
            .replace_code(re.compile("foo"), "bar")
            .replace_code(re.compile("foo"), "baz")
        )
        assert gcc.source_code == "barbaz"

    def test_regex_backreference(self):
        gcc = ClosureCompiler().append_code("var a = 1;").replace_code(
            re.compile(r"var (\w+)"), r"let \1"
        )
        assert gcc.source_code == "let a = 1;"

    def test_literal_pattern_is_not_a_regex(self):
        gcc = ClosureCompiler().append_code("a.b axb").replace_code("a.b", "X", count=0)
        assert gcc.source_code == "X axb"

    def test_no_match_leaves_code_untouched(self):
        gcc = ClosureCompiler().append_code("foo").replace_code("qux", "bar")
        assert gcc.source_code == "foo"


class TestOptions:
    """Tests for set_option / set_options."""

    def test_set_option(self):
        gcc = ClosureCompiler().set_option("warning_level", "VERBOSE")
        assert gcc.options["warning_level"] == "VERBOSE"

    def test_chains(self):
        gcc = (
            ClosureCompiler()
            .set_option("warning_level", "VERBOSE")
            .set_option("compilation_level", "WHITESPACE_ONLY")
        )
        assert gcc.options["warning_level"] == "VERBOSE"
        assert gcc.options["compilation_level"] == "WHITESPACE_ONLY"

    def test_set_options(self):
        gcc = ClosureCompiler().set_options({"warning_level": "VERBOSE", "language": "ECMASCRIPT5_STRICT"})
        assert gcc.options["warning_level"] == "VERBOSE"
        assert gcc.options["language"] == "ECMASCRIPT5_STRICT"

    def test_last_write_wins(self):
        gcc = (
            ClosureCompiler()
            .set_option("warning_level", "QUIET")
            .set_options({"warning_level": "DEFAULT"})
            .set_option("warning_level", "VERBOSE")
        )
        assert gcc.options["warning_level"] == "VERBOSE"

        gcc.set_options({"warning_level": "QUIET"})
        assert gcc.options["warning_level"] == "QUIET"

    def test_default_output_info(self):
        assert ClosureCompiler().options["output_info"] == ("compiled_code",)

    def test_list_and_bool_values_are_normalized(self):
        gcc = ClosureCompiler().set_options({
            "output_info": ["compiled_code", "statistics"],
            "use_closure_library": True,
        })
        assert gcc.options["output_info"] == ("compiled_code", "statistics")
        assert gcc.options["use_closure_library"] == "true"

    def test_unknown_option_warns_and_is_kept(self, capsys):
        gcc = ClosureCompiler().set_option("not_a_param", "x")
        assert gcc.options["not_a_param"] == "x"
        assert "Parameter unsupported, may cause error: not_a_param" in capsys.readouterr().err

    def test_known_option_does_not_warn(self, capsys):
        ClosureCompiler().set_option("language", "ECMASCRIPT5")
        assert capsys.readouterr().err == ""

    def test_js_code_option_sets_source(self):
        gcc = ClosureCompiler().append_code("old").set_option("js_code", "new")
        assert gcc.source_code == "new"
        assert "js_code" not in gcc.options


class TestHeader:

    def test_set_header(self):
        assert ClosureCompiler().set_header("/*HEADER*/").header == "/*HEADER*/"

    def test_header_is_not_sent(self):
        payload = ClosureCompiler().set_header("/*HEADER*/").append_code("x").build().payload()
        assert "/*HEADER*/" not in str(payload)


class TestCompileRequest:
    """Tests for the immutable request snapshot."""

    def test_payload(self):
        request = (
            ClosureCompiler()
            .set_option("compilation_level", "SIMPLE_OPTIMIZATIONS")
            .append_code("var a;")
            .build()
        )
        assert request.payload() == {
            "output_info": ["compiled_code"],
            "compilation_level": "SIMPLE_OPTIMIZATIONS",
            "js_code": "var a;",
            "output_format": "json",
        }

    def test_output_format_is_always_json(self):
        payload = ClosureCompiler().set_option("output_format", "text").build().payload()
        assert payload["output_format"] == "json"

    def test_lists_encode_as_repeated_keys(self):
        payload = ClosureCompiler().set_option("output_info", ["compiled_code", "errors"]).build().payload()
        assert parse_qs(urlencode(payload, doseq=True))["output_info"] == ["compiled_code", "errors"]

    def test_snapshot_is_isolated_from_builder(self):
        gcc = ClosureCompiler().set_option("language", "ECMASCRIPT5").append_code("a")
        request = gcc.build()
        gcc.set_option("language", "ECMASCRIPT3").append_code("b").set_header("h")

        assert request.source_code == "a"
        assert request.options["language"] == "ECMASCRIPT5"
        assert request.header == ""

    def test_snapshot_options_are_read_only(self):
        request = ClosureCompiler().build()
        with pytest.raises(TypeError):
            request.options["language"] = "ECMASCRIPT5"

    def test_empty_request(self):
        assert CompileRequest().payload() == {"js_code": "", "output_format": "json"}
