"""Tests for the call-site lints (mem_unsafe_functions, non_reentrant_functions)."""

from conftest import CONST_PTR, MUT_PTR, USIZE

from guidelint import analyze_unit
from guidelint.config import GuidelinesConfig


class TestMemUnsafeFunctions:
    def test_local_extern_declaration_end_to_end(self, b):
        """An unsafe call to a declared memcpy yields exactly one finding at the call."""
        memcpy = b.foreign_fn("memcpy", params=(MUT_PTR, CONST_PTR, USIZE), output=MUT_PTR)
        dst = b.binding("dst", MUT_PTR)
        src = b.binding("src", CONST_PTR)
        call = b.call(b.item_path(memcpy), b.path(dst), b.path(src), b.int(4, "usize"))
        copy = b.fn("copy", b.unsafe(call), params=(dst, src))

        diagnostics = analyze_unit(b.unit(b.foreign_mod(memcpy), copy))

        assert len(diagnostics) == 1
        (finding,) = diagnostics
        assert finding.rule == "mem_unsafe_functions"
        assert finding.span == call.span
        assert finding.message == "use of potentially dangerous memory manipulation function"
        assert finding.help == "consider using its safe version"

    def test_libc_path_resolves_through_default_namespace(self, b):
        dst = b.binding("dst", MUT_PTR)
        src = b.binding("src", CONST_PTR)
        call = b.call_path("libc::strcpy", b.path(dst), b.path(src))
        unit = b.unit(b.fn("copy", b.unsafe(call), params=(dst, src)))

        assert [d.rule for d in analyze_unit(unit)] == ["mem_unsafe_functions"]

    def test_unconfigured_function_is_ignored(self, b):
        dst = b.binding("dst", MUT_PTR)
        src = b.binding("src", CONST_PTR)
        call = b.call_path("libc::memcpy", b.path(dst), b.path(src), b.int(1, "usize"))
        unit = b.unit(b.fn("copy", b.unsafe(call), params=(dst, src)))
        config = GuidelinesConfig(mem_unsafe_functions=["strcpy"])

        assert analyze_unit(unit, config) == []


class TestNonReentrantFunctions:
    def test_call_to_localtime_is_flagged(self, b):
        t = b.binding("t", CONST_PTR)
        call = b.call_path("libc::localtime", b.path(t))
        diagnostics = analyze_unit(b.unit(b.fn("now", b.unsafe(call), params=(t,))))

        assert [d.rule for d in diagnostics] == ["non_reentrant_functions"]
        assert diagnostics[0].help == "consider using its reentrant counterpart"

    def test_qualified_pattern(self, b):
        call = b.call_path("mylib::strtok_wrapper")
        unit = b.unit(b.fn("tokenize", call))
        config = GuidelinesConfig(non_reentrant_functions=["mylib::strtok_wrapper"])

        assert [d.rule for d in analyze_unit(unit, config)] == ["non_reentrant_functions"]
