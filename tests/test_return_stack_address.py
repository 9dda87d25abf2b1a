"""Tests for return_stack_address and the block memo."""

from conftest import I32

from guidelint import analyze_unit
from guidelint.hir import Arm, Match, Ty, TyKind
from guidelint.rules import return_stack_address

I32_PTR = Ty(TyKind.RAW_PTR, inner=I32)


def _addr_cast(b, binding):
    return b.cast(b.addr_of(b.path(binding)), I32_PTR)


class TestReturnStackAddress:
    def test_trailing_address_of_local(self, b):
        x = b.binding("x", I32)
        addr = b.addr_of(b.path(x))
        fn = b.fn(
            "f",
            b.let(x, b.int(5, "i32")),
            expr=b.cast(addr, I32_PTR),
            output=I32_PTR,
        )

        diagnostics = analyze_unit(b.unit(fn))
        assert [d.rule for d in diagnostics] == ["return_stack_address"]
        assert diagnostics[0].span == addr.span
        assert diagnostics[0].message == "returning the address of a local variable"

    def test_nested_block_value_is_reported_once(self, b):
        x = b.binding("x", I32)
        inner = b.block(b.let(x, b.int(5, "i32")), expr=_addr_cast(b, x))
        fn = b.fn("f", expr=b.block_expr(inner), output=I32_PTR)

        assert [d.rule for d in analyze_unit(b.unit(fn))] == ["return_stack_address"]

    def test_explicit_return(self, b):
        x = b.binding("x", I32)
        fn = b.fn("f", b.let(x, b.int(5, "i32")), b.ret(_addr_cast(b, x)), output=I32_PTR)

        assert [d.rule for d in analyze_unit(b.unit(fn))] == ["return_stack_address"]

    def test_return_inside_branch(self, b):
        x = b.binding("x", I32)
        flag = b.binding("flag", Ty(TyKind.PRIMITIVE, "bool"))
        branch = b.if_(b.path(flag), b.block(b.ret(_addr_cast(b, x))))
        fn = b.fn(
            "f",
            b.let(x, b.int(5, "i32")),
            branch,
            expr=b.call_path("std::ptr::null"),
            params=(flag,),
            output=I32_PTR,
        )

        assert [d.rule for d in analyze_unit(b.unit(fn))] == ["return_stack_address"]

    def test_match_arms_are_followed(self, b):
        x = b.binding("x", I32)
        flag = b.binding("flag", Ty(TyKind.PRIMITIVE, "bool"))
        match = Match(
            hir_id=10_000,
            span=b.span(),
            scrutinee=b.path(flag),
            arms=[Arm(body=_addr_cast(b, x)), Arm(body=b.call_path("std::ptr::null"))],
        )
        fn = b.fn("f", b.let(x, b.int(5, "i32")), expr=match, params=(flag,), output=I32_PTR)

        assert [d.rule for d in analyze_unit(b.unit(fn))] == ["return_stack_address"]

    def test_parameter_address_is_not_reported(self, b):
        x = b.binding("x", I32)
        fn = b.fn("f", expr=_addr_cast(b, x), params=(x,), output=I32_PTR)

        assert analyze_unit(b.unit(fn)) == []

    def test_variable_of_outer_block_is_not_reported_for_inner_block(self, b):
        x = b.binding("x", I32)
        y = b.binding("y", Ty(TyKind.RAW_PTR, inner=I32))
        # let y = { &x as *const i32 }; the inner block does not own x
        inner = b.block(expr=_addr_cast(b, x))
        fn = b.fn(
            "f",
            b.let(x, b.int(5, "i32")),
            b.let(y, b.block_expr(inner)),
            expr=b.path(y),
            output=I32_PTR,
        )

        assert analyze_unit(b.unit(fn)) == []

    def test_closure_returns_are_not_the_functions(self, b):
        x = b.binding("x", I32)
        closure_body = b.block_expr(b.block(b.ret(_addr_cast(b, x))))
        fn = b.fn("f", b.let(x, b.int(5, "i32")), b.closure(closure_body))

        assert analyze_unit(b.unit(fn)) == []


class TestBlockMemo:
    def _unit(self, b):
        x = b.binding("x", I32)
        inner = b.block(b.let(x, b.int(5, "i32")), expr=_addr_cast(b, x))
        fn = b.fn("f", expr=b.block_expr(inner), output=I32_PTR)
        return b.unit(fn), fn

    def test_rerun_with_reset_memo_is_identical(self, b, make_context):
        unit, fn = self._unit(b)
        cx = make_context(unit)

        return_stack_address.check_block(cx, fn.body)
        first = list(cx.sink)
        cx.visited_blocks.clear()
        cx.sink.diagnostics.clear()
        return_stack_address.check_block(cx, fn.body)

        assert list(cx.sink) == first
        assert len(first) == 1

    def test_no_double_report_without_reset(self, b, make_context):
        unit, fn = self._unit(b)
        cx = make_context(unit)

        return_stack_address.check_block(cx, fn.body)
        return_stack_address.check_block(cx, fn.body)
        return_stack_address.check_block(cx, fn.body.expr.block)

        assert len(cx.sink) == 1

    def test_full_passes_are_independent(self, b):
        unit, _ = self._unit(b)
        assert analyze_unit(unit) == analyze_unit(unit)
