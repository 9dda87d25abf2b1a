"""Tests for blocking_op_in_async."""

from guidelint import analyze_unit
from guidelint.config import GuidelinesConfig
from guidelint.hir import Ty, TyKind

DURATION = Ty(TyKind.ADT, "std::time::Duration")


def _sleep(b, d):
    return b.call_path("std::thread::sleep", b.path(d))


class TestAsyncFunctions:
    def test_blocking_call_in_async_fn(self, b):
        d = b.binding("d", DURATION)
        call = _sleep(b, d)
        unit = b.unit(b.fn("tick", call, params=(d,), is_async=True))

        diagnostics = analyze_unit(unit)
        assert [x.rule for x in diagnostics] == ["blocking_op_in_async"]
        assert diagnostics[0].span == call.span

    def test_same_call_in_sync_fn_is_fine(self, b):
        d = b.binding("d", DURATION)
        unit = b.unit(b.fn("tick", _sleep(b, d), params=(d,)))

        assert analyze_unit(unit) == []

    def test_closure_inside_async_fn_inherits(self, b):
        d = b.binding("d", DURATION)
        closure = b.closure(_sleep(b, d))
        unit = b.unit(b.fn("tick", closure, params=(d,), is_async=True))

        assert [x.rule for x in analyze_unit(unit)] == ["blocking_op_in_async"]

    def test_async_block_inside_sync_fn(self, b):
        d = b.binding("d", DURATION)
        block = b.closure(b.block_expr(b.block(_sleep(b, d))), is_async=True)
        unit = b.unit(b.fn("spawn_tick", block, params=(d,)))

        assert [x.rule for x in analyze_unit(unit)] == ["blocking_op_in_async"]

    def test_nested_async_block_reported_once(self, b):
        d = b.binding("d", DURATION)
        block = b.closure(b.block_expr(b.block(_sleep(b, d))), is_async=True)
        unit = b.unit(b.fn("tick", block, params=(d,), is_async=True))

        assert len(analyze_unit(unit)) == 1

    def test_nested_sync_fn_item_is_not_async(self, b):
        d = b.binding("d", DURATION)
        helper = b.fn("helper", _sleep(b, d), params=(d,))
        unit = b.unit(b.fn("outer", helper, is_async=True))

        assert analyze_unit(unit) == []

    def test_method_call_resolved_to_blocking_primitive(self, b):
        m = b.binding("m", Ty(TyKind.ADT, "std::sync::Mutex"))
        lock = b.method(b.path(m), "lock", def_id=b.dep("std::sync::Mutex::lock"))
        unit = b.unit(b.fn("critical", lock, params=(m,), is_async=True))

        assert [x.rule for x in analyze_unit(unit)] == ["blocking_op_in_async"]


class TestIoFunctions:
    def test_io_call_in_async_fn(self, b):
        read = b.call_path("std::fs::read_to_string", b.str("config.toml"))
        unit = b.unit(b.fn("load", read, is_async=True))

        assert [x.rule for x in analyze_unit(unit)] == ["blocking_op_in_async"]

    def test_io_blocking_can_be_allowed(self, b):
        read = b.call_path("std::fs::read_to_string", b.str("config.toml"))
        unit = b.unit(b.fn("load", read, is_async=True))

        assert analyze_unit(unit, GuidelinesConfig(allow_io_blocking_ops=True)) == []

    def test_builtin_primitives_stay_denied_when_io_allowed(self, b):
        d = b.binding("d", DURATION)
        unit = b.unit(b.fn("tick", _sleep(b, d), params=(d,), is_async=True))

        config = GuidelinesConfig(allow_io_blocking_ops=True)
        assert [x.rule for x in analyze_unit(unit, config)] == ["blocking_op_in_async"]
