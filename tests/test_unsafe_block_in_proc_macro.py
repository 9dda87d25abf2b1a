"""Tests for unsafe_block_in_proc_macro."""

from conftest import rules_of

from guidelint import analyze_unit
from guidelint.hir import Expansion, MacroKind, Span


def _expanded(b, call_site, name="make_unsafe", kind=MacroKind.BANG, proc=True):
    expansion = Expansion(name, kind, call_site, is_proc_macro=proc)
    return Span(b.file, 900 + call_site.line, 1, expansion=expansion)


def _macro_unsafe(b, call_site, **kwargs):
    block = b.block(b.call_path("mylib::poke"), unsafe=True, span=_expanded(b, call_site, **kwargs))
    return b.block_expr(block)


class TestUnsafeBlockInProcMacro:
    def test_reported_at_call_site(self, b):
        call_site = b.span()
        unit = b.unit(b.fn("f", _macro_unsafe(b, call_site)))

        diagnostics = analyze_unit(unit)
        assert rules_of(diagnostics) == ["unsafe_block_in_proc_macro"]
        assert diagnostics[0].span == call_site
        assert "`make_unsafe`" in diagnostics[0].message

    def test_one_finding_per_invocation(self, b):
        call_site = b.span()
        unit = b.unit(b.fn("f", _macro_unsafe(b, call_site), _macro_unsafe(b, call_site)))

        assert len(analyze_unit(unit)) == 1

    def test_distinct_invocations_are_reported_separately(self, b):
        unit = b.unit(b.fn("f", _macro_unsafe(b, b.span()), _macro_unsafe(b, b.span())))

        assert len(analyze_unit(unit)) == 2

    def test_attribute_macro(self, b):
        call_site = b.span()
        block = _macro_unsafe(b, call_site, name="instrument", kind=MacroKind.ATTR)
        unit = b.unit(b.fn("f", block))

        diagnostics = analyze_unit(unit)
        assert diagnostics[0].message == "procedural macro `instrument` makes this code unsafe"

    def test_declarative_macro_is_ignored(self, b):
        unit = b.unit(b.fn("f", _macro_unsafe(b, b.span(), proc=False)))

        assert analyze_unit(unit) == []

    def test_safe_block_from_proc_macro_is_ignored(self, b):
        block = b.block(b.call_path("mylib::poke"), span=_expanded(b, b.span()))
        unit = b.unit(b.fn("f", b.block_expr(block)))

        assert analyze_unit(unit) == []

    def test_handwritten_unsafe_is_ignored(self, b):
        unit = b.unit(b.fn("f", b.unsafe(b.call_path("mylib::poke"))))

        assert analyze_unit(unit) == []
