"""Fallible Memory Allocation Analyzer.

Two independent findings per allocation call (``malloc``, ``std::alloc::alloc``):

1. A non-constant size argument is not bounded first. A bound is a
   comparison mentioning the size binding, or a call to a configured
   ``alloc_size_check_functions`` helper taking it, in a position that
   dominates the allocation.
2. The returned pointer is dereferenced without a dominating null check
   (``p.is_null()``, ``p == ptr::null_mut()``, ``NonNull::new(p)``).

Both are reported at the allocation call.
"""

from functools import partial

from guidelint.context import LintContext, fn_def_id
from guidelint.hir import (
    AddrOf,
    Assign,
    Binary,
    BinOp,
    Block,
    BlockExpr,
    Call,
    Cast,
    Expr,
    Lit,
    LitKind,
    Local,
    MethodCall,
    PathExpr,
    ResKind,
    Unary,
    UnOp,
)
from guidelint.lints import FALLIBLE_MEMORY_ALLOCATION
from guidelint.rules.ptr import is_null_ptr
from guidelint.visit import dominating_roots, find_ancestors, peel_casts, walk_exprs

_NULL_CHECK_METHODS = frozenset({"is_null"})


def _size_locals(expr: Expr, out: list[int]) -> None:
    """Collect the local bindings an allocation size depends on."""
    expr = peel_casts(expr)
    if isinstance(expr, PathExpr):
        if expr.local_id is not None and not (expr.ty is not None and expr.ty.is_raw_ptr):
            out.append(expr.local_id)
    elif isinstance(expr, Binary):
        _size_locals(expr.lhs, out)
        _size_locals(expr.rhs, out)
    elif isinstance(expr, Unary) and expr.op is not UnOp.DEREF:
        _size_locals(expr.expr, out)
    elif isinstance(expr, (Call, MethodCall)):
        if isinstance(expr, MethodCall):
            _size_locals(expr.receiver, out)
        for arg in expr.args:
            _size_locals(arg, out)


def _mentions_local(expr: Expr, hir_id: int) -> bool:
    return any(
        isinstance(e, PathExpr) and e.local_id == hir_id
        for e in walk_exprs(expr, into_closures=False)
    )


def _is_size_helper(cx: LintContext, call: Expr) -> bool:
    helpers = cx.config.alloc_size_check_functions
    if not helpers or not isinstance(call, Call) or not isinstance(call.func, PathExpr):
        return False
    path = "::".join(call.func.segments)
    name = call.func.segments[-1]
    return any(h == path or h.split("::")[-1] == name for h in helpers)


def _bounds(cx: LintContext, expr: Expr, hir_id: int) -> bool:
    """Whether ``expr`` contains a bound check on the binding."""
    for e in walk_exprs(expr, into_closures=False):
        if isinstance(e, Binary) and e.op.is_comparison:
            if _mentions_local(e.lhs, hir_id) or _mentions_local(e.rhs, hir_id):
                return True
        elif isinstance(e, Call) and _is_size_helper(cx, e):
            if any(_mentions_local(arg, hir_id) for arg in e.args):
                return True
    return False


def _is_dominated_by(body: Block, target, predicate) -> bool:
    return any(
        predicate(e)
        for node, _ in dominating_roots(body, target)
        for e in walk_exprs(node, into_closures=False)
    )


def _is_null_check(cx: LintContext, expr: Expr, hir_id: int) -> bool:
    if isinstance(expr, MethodCall) and expr.method in _NULL_CHECK_METHODS:
        receiver = peel_casts(expr.receiver)
        return isinstance(receiver, PathExpr) and receiver.local_id == hir_id
    if isinstance(expr, Binary) and expr.op in (BinOp.EQ, BinOp.NE):
        for side, other in ((expr.lhs, expr.rhs), (expr.rhs, expr.lhs)):
            side = peel_casts(side)
            if isinstance(side, PathExpr) and side.local_id == hir_id:
                other_inner = peel_casts(other)
                if is_null_ptr(cx, other) or (
                    isinstance(other_inner, Lit)
                    and other_inner.kind is LitKind.INT
                    and other_inner.value == 0
                ):
                    return True
        return False
    if isinstance(expr, Call) and fn_def_id(expr) in cx.non_null_ctor_ids:
        return any(_mentions_local(arg, hir_id) for arg in expr.args)
    return False


def _result_binding(body: Block, call: Expr) -> int | None:
    """Local the allocation result is stored into, if any."""
    chain = find_ancestors(body, call)
    if not chain:
        return None
    # Walk up through value-preserving wrappers.
    child = call
    for parent in reversed(chain[:-1]):
        if isinstance(parent, Cast) or (
            isinstance(parent, BlockExpr) and parent.block.expr is child
        ):
            child = parent
            continue
        if isinstance(parent, Block) and parent.expr is child:
            child = parent
            continue
        if isinstance(parent, Local) and parent.init is child:
            binding = parent.binding
            return binding.hir_id if binding is not None else None
        if isinstance(parent, Assign) and parent.op is None and parent.rhs is child:
            return parent.lhs.local_id if isinstance(parent.lhs, PathExpr) else None
        return None
    return None


def _first_deref(body: Block, hir_id: int, after: Expr) -> Expr | None:
    seen = False
    for e in walk_exprs(body, into_closures=True):
        if e is after:
            seen = True
            continue
        if not seen:
            continue
        if isinstance(e, Unary) and e.op is UnOp.DEREF:
            inner = peel_casts(e.expr)
            if isinstance(inner, PathExpr) and inner.local_id == hir_id:
                return e
    return None


def _is_constant(expr: Expr) -> bool:
    expr = peel_casts(expr)
    if isinstance(expr, Lit):
        return True
    if isinstance(expr, PathExpr):
        return expr.res.kind is ResKind.DEF
    if isinstance(expr, Binary):
        return _is_constant(expr.lhs) and _is_constant(expr.rhs)
    return False


def _is_direct_deref(body: Block, call: Expr) -> bool:
    """``*malloc(n)`` or ``*(malloc(n) as *mut T)``."""
    chain = find_ancestors(body, call) or []
    child = call
    for parent in reversed(chain[:-1]):
        if isinstance(parent, Cast):
            child = parent
            continue
        return isinstance(parent, Unary) and parent.op is UnOp.DEREF and parent.expr is child
    return False


def check_alloc(cx: LintContext, expr: Call | MethodCall) -> None:
    frame = cx.frame
    if frame is None:
        return
    body = frame.fn.body

    sizes: list[int] = []
    for arg in expr.args:
        if not _is_constant(arg) and not isinstance(arg, AddrOf):
            _size_locals(arg, sizes)
    unchecked = [
        hir_id
        for hir_id in dict.fromkeys(sizes)
        if hir_id not in frame.pointers
        and not _is_dominated_by(body, expr, partial(_bounds, cx, hir_id=hir_id))
    ]
    if unchecked:
        cx.emit(
            FALLIBLE_MEMORY_ALLOCATION,
            expr.span,
            "allocation size is not checked before the call",
            "compare the size against an upper bound before allocating",
        )

    if _is_direct_deref(body, expr):
        unchecked_result = True
    else:
        hir_id = _result_binding(body, expr)
        deref = _first_deref(body, hir_id, expr) if hir_id is not None else None
        unchecked_result = deref is not None and not _is_dominated_by(
            body, deref, partial(_is_null_check, cx, hir_id=hir_id)
        )
    if unchecked_result:
        cx.emit(
            FALLIBLE_MEMORY_ALLOCATION,
            expr.span,
            "result of the allocation is dereferenced without a null check",
            "check the returned pointer with `is_null()` before using it",
        )
