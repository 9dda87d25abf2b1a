"""Blocking calls inside async code.

A call to a denylisted function whose nearest enclosing async scope is an
``async fn``, ``async`` block or ``async`` closure. Plain closures inherit
the status of the function they are written in. Nested items and nested
async scopes are examined on their own, so every call is looked at once.
"""

from guidelint.context import LintContext, fn_def_id
from guidelint.hir import Call, Closure, Expr, FnItem, MethodCall
from guidelint.lints import BLOCKING_OP_IN_ASYNC
from guidelint.resolver import FunctionCategory
from guidelint.utils.logging import logger
from guidelint.visit import walk_exprs


def init_blacklist_ids(cx: LintContext) -> None:
    """Seed the denylist: built-in primitives plus IO unless IO blocking is allowed."""
    blocking = cx.fns(FunctionCategory.BLOCKING)
    blocking.resolve(cx.unit.namespace)
    if not cx.config.allow_io_blocking_ops:
        blocking.ids.update(cx.fns(FunctionCategory.IO).ids)
    logger.debug("Blocking denylist holds {count} functions", count=len(blocking.ids))


def _check_scope(cx: LintContext, root: Expr | FnItem) -> None:
    body = root.body
    for expr in walk_exprs(body, into_async=False):
        if not isinstance(expr, (Call, MethodCall)):
            continue
        if cx.is_in(FunctionCategory.BLOCKING, fn_def_id(expr)):
            cx.emit(
                BLOCKING_OP_IN_ASYNC,
                expr.span,
                "blocking function call in an async context",
                "use the async counterpart or move the call to a blocking task",
            )


def check_fn(cx: LintContext, fn: FnItem) -> None:
    if fn.sig.is_async:
        _check_scope(cx, fn)


def check_expr(cx: LintContext, expr: Expr) -> None:
    """``async { .. }`` blocks and ``async`` closures."""
    if isinstance(expr, Closure) and expr.is_async:
        _check_scope(cx, expr)
