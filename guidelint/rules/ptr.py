"""Pointer Lifecycle Analyzer.

Tracks every raw-pointer binding of the function body being traversed and
reports:
- null_ptr_dereference: ``*p`` while ``p`` still holds a null literal
- dangling_ptr_dereference: ``*p`` after ``p`` was passed to a free function
- ptr_double_free: freeing ``p`` a second time

Events arrive from the dispatcher in source order, so the analysis is
purely lexical: any reassignment written between two events clears the
state no matter which branch it sits on. Writing through the pointer
(``*p = v``) gives it a target, so later reads are not null dereferences.
A pointer handed to any other call (as an argument or as the receiver of
a method), or borrowed mutably, is opaque from then on.
"""

from guidelint.context import LintContext, PointerBindingState, PointerOrigin, fn_def_id
from guidelint.hir import (
    AddrOf,
    Assign,
    Call,
    Cast,
    Expr,
    FnItem,
    Lit,
    LitKind,
    Local,
    MethodCall,
    PathExpr,
    Unary,
    UnOp,
)
from guidelint.lints import DANGLING_PTR_DEREFERENCE, NULL_PTR_DEREFERENCE, PTR_DOUBLE_FREE
from guidelint.resolver import FunctionCategory
from guidelint.visit import peel_casts


def is_null_ptr(cx: LintContext, expr: Expr) -> bool:
    """``ptr::null()``, ``ptr::null_mut()`` or ``0 as *const T``."""
    inner = peel_casts(expr)
    if isinstance(inner, Call) and not inner.args:
        return fn_def_id(inner) in cx.null_ctor_ids
    if isinstance(inner, Lit) and inner.kind is LitKind.INT and inner.value == 0:
        return isinstance(expr, Cast) and expr.target.is_raw_ptr
    return False


def _is_pointer_init(cx: LintContext, init: Expr) -> bool:
    if is_null_ptr(cx, init):
        return True
    if isinstance(init, Cast) and init.target.is_raw_ptr:
        return True
    if init.ty is not None and init.ty.is_raw_ptr:
        return True
    return cx.is_in(FunctionCategory.MEM_ALLOC, fn_def_id(peel_casts(init)))


def _traced_local(expr: Expr) -> int | None:
    inner = peel_casts(expr)
    if isinstance(inner, PathExpr):
        return inner.local_id
    return None


def _written_pointer(expr: Assign) -> int | None:
    """The pointer binding behind ``*p = v``."""
    lhs = expr.lhs
    if expr.op is not None or not isinstance(lhs, Unary) or lhs.op is not UnOp.DEREF:
        return None
    return _traced_local(lhs.expr)


def enter_fn(cx: LintContext, fn: FnItem) -> None:
    """Seed the frame with pointer-typed parameters."""
    frame = cx.frame
    if frame is None:
        return
    for param in fn.sig.params:
        if param.binding is not None and param.ty.is_raw_ptr:
            frame.pointers[param.binding.hir_id] = PointerBindingState(
                PointerOrigin.ASSIGNED_NON_NULL
            )


def check_local(cx: LintContext, local: Local) -> None:
    frame = cx.frame
    binding = local.binding
    if frame is None or binding is None:
        return

    declared = local.ty or binding.ty
    is_pointer = declared is not None and declared.is_raw_ptr
    if local.init is not None and not is_pointer:
        is_pointer = _is_pointer_init(cx, local.init)
    if not is_pointer:
        return

    if local.init is None:
        origin = PointerOrigin.UNINITIALIZED
    elif is_null_ptr(cx, local.init):
        origin = PointerOrigin.NULL_LITERAL
    else:
        origin = PointerOrigin.ASSIGNED_NON_NULL
    frame.pointers[binding.hir_id] = PointerBindingState(origin)


def check_assign(cx: LintContext, expr: Assign) -> None:
    """``p = value`` resets the binding; runs after the right-hand side was visited."""
    frame = cx.frame
    if frame is None or expr.op is not None:
        return

    written = _written_pointer(expr)
    if written is not None:
        state = frame.pointers.get(written)
        if state is not None:
            state.origin = PointerOrigin.ASSIGNED_NON_NULL
        return

    if not isinstance(expr.lhs, PathExpr):
        return
    hir_id = expr.lhs.local_id
    if hir_id is None:
        return
    null = is_null_ptr(cx, expr.rhs)
    if hir_id not in frame.pointers and not null:
        return
    origin = PointerOrigin.NULL_LITERAL if null else PointerOrigin.ASSIGNED_NON_NULL
    frame.pointers[hir_id] = PointerBindingState(origin)


def check_call(cx: LintContext, expr: Call | MethodCall, is_free: bool) -> None:
    frame = cx.frame
    if frame is None:
        return
    operands = list(expr.args)
    if isinstance(expr, MethodCall):
        operands.append(expr.receiver)
    traced = [
        hir_id
        for hir_id in (_traced_local(operand) for operand in operands)
        if hir_id is not None and hir_id in frame.pointers
    ]
    if not is_free:
        # The callee may store, free or overwrite the pointer.
        for hir_id in traced:
            frame.pointers.pop(hir_id, None)
        return
    if len(traced) != 1:
        return

    state = frame.pointers[traced[0]]
    if state.freed:
        cx.emit(
            PTR_DOUBLE_FREE,
            expr.span,
            "freeing a pointer that has already been freed",
            "consider setting the pointer to null after freeing it",
        )
    state.freed = True


def check_expr(cx: LintContext, expr: Expr) -> None:
    """Dereferences and mutable borrows of tracked pointers."""
    frame = cx.frame
    if frame is None:
        return

    if isinstance(expr, Assign):
        if _written_pointer(expr) is not None:
            frame.written_derefs.add(expr.lhs.hir_id)
        return

    if isinstance(expr, AddrOf) and expr.mutable:
        hir_id = _traced_local(expr.expr)
        if hir_id is not None:
            frame.pointers.pop(hir_id, None)
        return

    if not isinstance(expr, Unary) or expr.op is not UnOp.DEREF:
        return
    hir_id = _traced_local(expr.expr)
    state = frame.pointers.get(hir_id) if hir_id is not None else None
    if state is None:
        return

    if state.freed:
        cx.emit(
            DANGLING_PTR_DEREFERENCE,
            expr.span,
            "dereferencing a pointer that has already been freed",
            "the memory it points to is no longer owned by the program",
        )
    elif state.origin is PointerOrigin.NULL_LITERAL and expr.hir_id not in frame.written_derefs:
        cx.emit(
            NULL_PTR_DEREFERENCE,
            expr.span,
            "dereferencing a null pointer",
            "assign a valid address or check it with `is_null()` first",
        )
