"""Passing native strings to foreign functions.

Rust ``String`` and ``str`` are not NUL terminated, so handing
``s.as_ptr()`` to a C function lets it read past the end of the buffer.
Callers should go through ``CString`` instead.
"""

from guidelint.context import LintContext, is_foreign_fn_call
from guidelint.hir import Call, Expr, Lit, LitKind, MethodCall
from guidelint.lints import PASSING_STRING_TO_C_FUNCTIONS
from guidelint.visit import peel_casts

POINTER_METHODS = frozenset({"as_ptr", "as_mut_ptr"})
BYTE_VIEW_METHODS = frozenset({"as_bytes", "as_bytes_mut"})


def _is_native_string(expr: Expr) -> bool:
    if isinstance(expr, Lit) and expr.kind is LitKind.STR:
        return True
    return expr.ty is not None and expr.ty.is_native_string


def _string_pointer(arg: Expr) -> bool:
    inner = peel_casts(arg)
    if not isinstance(inner, MethodCall) or inner.method not in POINTER_METHODS:
        return False
    receiver = inner.receiver
    if isinstance(receiver, MethodCall) and receiver.method in BYTE_VIEW_METHODS:
        receiver = receiver.receiver
    return _is_native_string(receiver)


def check_call(cx: LintContext, expr: Call) -> None:
    if not is_foreign_fn_call(expr):
        return
    for arg in expr.args:
        if _string_pointer(arg):
            cx.emit(
                PASSING_STRING_TO_C_FUNCTIONS,
                arg.span,
                "passing a `String` or `str` pointer to an extern function",
                "convert it with `std::ffi::CString` first",
            )
