"""Unsafe blocks produced by procedural macro expansions.

The user invoking the macro never sees the ``unsafe`` it emits, so the
finding is reported at the invocation. One invocation yields one finding
however many unsafe blocks it expands to.
"""

from guidelint.context import LintContext
from guidelint.hir import BlockExpr, Expr
from guidelint.lints import UNSAFE_BLOCK_IN_PROC_MACRO


def check_expr(cx: LintContext, expr: Expr) -> None:
    if not isinstance(expr, BlockExpr) or not expr.block.unsafe:
        return
    span = expr.block.span
    if not span.from_proc_macro:
        return
    call_site = span.expansion.call_site
    if call_site in cx.macro_call_sites:
        return
    cx.macro_call_sites.add(call_site)
    cx.emit(
        UNSAFE_BLOCK_IN_PROC_MACRO,
        call_site,
        f"procedural macro `{span.expansion.macro_name}` makes this code unsafe",
        "review the macro's expansion or avoid emitting unsafe code from it",
    )
