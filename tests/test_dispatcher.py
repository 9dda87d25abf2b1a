"""Tests for the traversal dispatcher and the one-shot engine."""

import copy

from conftest import CONST_PTR, I32, USIZE, rules_of

from guidelint import analyze_unit
from guidelint.dispatcher import GuidelinesPass, foreign_items, iter_items
from guidelint.hir import ImplItem, ModItem
from guidelint.resolver import FunctionCategory


class TestUnitSetup:
    def test_iter_items_finds_nested_items(self, b):
        inner = b.fn("inner")
        adt = b.adt("Point")
        module = ModItem(name="geometry", span=b.span(), items=[adt])
        impl = ImplItem(span=b.span(), self_ty="Point", items=[b.fn("new", inner)])
        unit = b.unit(module, impl)

        names = [getattr(item, "name", None) for item in iter_items(unit)]
        assert "Point" in names
        assert "new" in names
        assert "inner" in names

    def test_extern_declarations_join_every_configured_category(self, b, make_context):
        strcpy = b.foreign_fn("strcpy", params=(CONST_PTR, CONST_PTR))
        malloc = b.foreign_fn("malloc", params=(USIZE,))
        unit = b.unit(b.foreign_mod(strcpy, malloc))
        cx = make_context(unit)

        GuidelinesPass(cx).check_unit(unit)

        assert strcpy.def_id in cx.fns(FunctionCategory.MEM_UNSAFE)
        assert malloc.def_id in cx.fns(FunctionCategory.MEM_ALLOC)
        assert malloc.def_id not in cx.fns(FunctionCategory.MEM_UNSAFE)
        assert foreign_items(unit) == [strcpy, malloc]

    def test_local_data_types_are_indexed(self, b, make_context):
        adt = b.adt("Point")
        unit = b.unit(ModItem(name="geometry", span=b.span(), items=[adt]))
        cx = make_context(unit)

        GuidelinesPass(cx).check_unit(unit)
        assert cx.adts == {adt.def_id: adt}


class TestPass:
    def test_diagnostics_follow_source_order(self, b):
        i = b.binding("i")
        p = b.binding("p")
        unit = b.unit(
            b.fn(
                "f",
                b.let(p, b.call_path("std::ptr::null_mut")),
                b.unsafe(b.deref(b.path(p))),
                b.let(i, b.int(3)),
                b.call_path("libc::strcpy", b.path(p), b.path(p)),
            )
        )

        assert rules_of(analyze_unit(unit)) == [
            "null_ptr_dereference",
            "unconstrained_numeric_literal",
            "mem_unsafe_functions",
        ]

    def test_unit_is_not_modified(self, b):
        x = b.binding("x", I32)
        fn = b.fn("f", b.let(x, b.int(5)), b.call_path("libc::gets", b.path(x)))
        unit = b.unit(fn)
        before = copy.deepcopy(unit)

        analyze_unit(unit)

        assert len(unit.items) == len(before.items)
        assert len(fn.body.stmts) == len(before.items[0].body.stmts)
        assert fn.body.stmts[0].init.suffix is None

    def test_frames_are_balanced(self, b, make_context):
        unit = b.unit(b.fn("a", b.fn("b")), b.fn("c"))
        cx = make_context(unit)

        GuidelinesPass(cx).run()
        assert cx.frames == []

    def test_repeated_runs_are_identical(self, b):
        p = b.binding("p")
        unit = b.unit(
            b.fn(
                "f",
                b.let(p, b.call_path("std::ptr::null_mut")),
                b.unsafe(b.deref(b.path(p))),
            )
        )

        assert analyze_unit(unit) == analyze_unit(unit)
