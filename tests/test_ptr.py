"""Tests for the pointer lifecycle lints.

Tests cover:
- null_ptr_dereference and its suppression by reassignment
- ptr_double_free and its suppression by reassignment
- dangling_ptr_dereference
- pointers escaping into other calls or mutable borrows
"""

from conftest import I32, MUT_PTR

from guidelint import analyze_unit
from guidelint.hir import Ty, TyKind


def _rules(diagnostics):
    return [d.rule for d in diagnostics]


class TestNullPointerDereference:
    def test_deref_of_null_binding(self, b):
        p = b.binding("p", MUT_PTR)
        deref = b.deref(b.path(p))
        unit = b.unit(b.fn("f", b.let(p, b.call_path("std::ptr::null_mut")), b.unsafe(deref)))

        diagnostics = analyze_unit(unit)
        assert _rules(diagnostics) == ["null_ptr_dereference"]
        assert diagnostics[0].span == deref.span
        assert diagnostics[0].message == "dereferencing a null pointer"

    def test_zero_cast_to_pointer_is_null(self, b):
        p = b.binding("p")
        init = b.cast(b.int(0), MUT_PTR)
        unit = b.unit(b.fn("f", b.let(p, init), b.unsafe(b.deref(b.path(p)))))

        assert _rules(analyze_unit(unit)) == ["null_ptr_dereference"]

    def test_reassignment_before_deref_suppresses(self, b):
        p = b.binding("p", MUT_PTR, mutable=True)
        q = b.binding("q", MUT_PTR)
        unit = b.unit(
            b.fn(
                "f",
                b.let(p, b.call_path("core::ptr::null_mut")),
                b.assign(b.path(p), b.path(q)),
                b.unsafe(b.deref(b.path(p))),
                params=(q,),
            )
        )

        assert analyze_unit(unit) == []

    def test_assigning_null_later_starts_tracking(self, b):
        x = b.binding("x", I32, mutable=True)
        p = b.binding("p", MUT_PTR, mutable=True)
        unit = b.unit(
            b.fn(
                "f",
                b.let(x, b.int(1, "i32")),
                b.let(p, b.addr_of(b.path(x), mutable=True)),
                b.assign(b.path(p), b.call_path("std::ptr::null_mut")),
                b.unsafe(b.deref(b.path(p))),
            )
        )

        assert _rules(analyze_unit(unit)) == ["null_ptr_dereference"]

    def test_pointer_handed_to_a_call_becomes_opaque(self, b):
        p = b.binding("p", MUT_PTR, mutable=True)
        unit = b.unit(
            b.fn(
                "f",
                b.let(p, b.call_path("std::ptr::null_mut")),
                b.call_path("mylib::init", b.addr_of(b.path(p), mutable=True)),
                b.unsafe(b.deref(b.path(p))),
            )
        )

        assert analyze_unit(unit) == []

    def test_is_null_guard_stops_tracking(self, b):
        """A pointer used as a method receiver is treated like a call argument."""
        p = b.binding("p", MUT_PTR)
        guard = b.if_(
            b.not_(b.method(b.path(p), "is_null")),
            b.block(b.unsafe(b.deref(b.path(p)))),
        )
        unit = b.unit(b.fn("f", b.let(p, b.call_path("std::ptr::null_mut")), guard))

        assert analyze_unit(unit) == []

    def test_write_through_null_pointer_gives_it_a_target(self, b):
        """``*a = 10_i8;`` followed by a read is accepted."""
        a = b.binding("a", MUT_PTR)
        unit = b.unit(
            b.fn(
                "f",
                b.let(a, b.call_path("std::ptr::null_mut")),
                b.unsafe(b.assign(b.deref(b.path(a)), b.int(10, "i8"))),
                b.unsafe(b.deref(b.path(a))),
            )
        )

        assert analyze_unit(unit) == []

    def test_read_on_right_of_write_is_checked(self, b):
        p = b.binding("p", MUT_PTR)
        read = b.deref(b.path(p))
        unit = b.unit(
            b.fn(
                "f",
                b.let(p, b.call_path("std::ptr::null_mut")),
                b.unsafe(b.assign(b.deref(b.path(p)), read)),
            )
        )

        diagnostics = analyze_unit(unit)
        assert _rules(diagnostics) == ["null_ptr_dereference"]
        assert diagnostics[0].span == read.span

    def test_pointer_states_do_not_leak_between_functions(self, b):
        p = b.binding("p", MUT_PTR)
        first = b.fn("first", b.let(p, b.call_path("std::ptr::null_mut")))
        second = b.fn("second", b.unsafe(b.deref(b.path(p))))

        assert analyze_unit(b.unit(first, second)) == []


class TestDoubleFree:
    def test_second_free_is_reported_once(self, b):
        p = b.binding("p", MUT_PTR)
        first = b.call_path("libc::free", b.path(p))
        second = b.call_path("libc::free", b.path(p))
        unit = b.unit(b.fn("release", b.unsafe(first, second), params=(p,)))

        diagnostics = analyze_unit(unit)
        assert _rules(diagnostics) == ["ptr_double_free"]
        assert diagnostics[0].span == second.span

    def test_free_through_cast(self, b):
        p = b.binding("p", MUT_PTR)
        void_ptr = Ty(TyKind.RAW_PTR, inner=Ty(TyKind.ADT, "libc::c_void"), mutable=True)
        unit = b.unit(
            b.fn(
                "release",
                b.call_path("libc::free", b.cast(b.path(p), void_ptr)),
                b.call_path("libc::free", b.cast(b.path(p), void_ptr)),
                params=(p,),
            )
        )

        assert _rules(analyze_unit(unit)) == ["ptr_double_free"]

    def test_reassignment_between_frees_suppresses(self, b):
        p = b.binding("p", MUT_PTR, mutable=True)
        q = b.binding("q", MUT_PTR)
        unit = b.unit(
            b.fn(
                "release",
                b.call_path("libc::free", b.path(p)),
                b.assign(b.path(p), b.path(q)),
                b.call_path("libc::free", b.path(p)),
                params=(p, q),
            )
        )

        assert analyze_unit(unit) == []

    def test_qualified_free_function(self, b):
        p = b.binding("p", MUT_PTR)
        layout = b.binding("layout", Ty(TyKind.ADT, "std::alloc::Layout"))
        unit = b.unit(
            b.fn(
                "release",
                b.call_path("std::alloc::dealloc", b.path(p), b.path(layout)),
                b.call_path("std::alloc::dealloc", b.path(p), b.path(layout)),
                params=(p, layout),
            )
        )

        assert _rules(analyze_unit(unit)) == ["ptr_double_free"]


class TestDanglingPointerDereference:
    def test_deref_after_free(self, b):
        p = b.binding("p", MUT_PTR)
        deref = b.deref(b.path(p))
        unit = b.unit(
            b.fn("use_after_free", b.call_path("libc::free", b.path(p)), deref, params=(p,))
        )

        diagnostics = analyze_unit(unit)
        assert _rules(diagnostics) == ["dangling_ptr_dereference"]
        assert diagnostics[0].span == deref.span

    def test_write_through_freed_pointer(self, b):
        p = b.binding("p", MUT_PTR)
        unit = b.unit(
            b.fn(
                "use_after_free",
                b.call_path("libc::free", b.path(p)),
                b.assign(b.deref(b.path(p)), b.int(0, "u8")),
                params=(p,),
            )
        )

        assert _rules(analyze_unit(unit)) == ["dangling_ptr_dereference"]
