"""Stack-Escape Analyzer.

Flags a block whose value (trailing expression or ``return``) is the
address of a binding declared by a ``let`` directly inside that block:

    fn f() -> *const i32 {
        let x = 1;
        &x as *const i32   // flagged, x dies with the frame
    }

Nested value-producing blocks reached while peeling are analysed on the
spot and recorded in the context's block memo so the dispatcher does not
examine them a second time.
"""

from collections.abc import Iterator

from guidelint.context import LintContext
from guidelint.hir import AddrOf, Block, BlockExpr, Cast, Expr, If, Local, Match, PathExpr, Return
from guidelint.lints import RETURN_STACK_ADDRESS
from guidelint.visit import walk_exprs

MAX_PEEL_DEPTH = 32


def block_locals(block: Block) -> set[int]:
    """Bindings declared by ``let`` statements directly in ``block``."""
    return {
        binding.hir_id
        for stmt in block.stmts
        if isinstance(stmt, Local)
        for binding in stmt.bindings
    }


def _returns(block: Block) -> Iterator[Return]:
    for expr in walk_exprs(block, into_closures=False, into_async=False):
        if isinstance(expr, Return) and expr.value is not None:
            yield expr


def _escaping(cx: LintContext, expr: Expr, scope: set[int], depth: int = 0) -> Iterator[AddrOf]:
    """Address-of expressions of in-scope locals that ``expr`` evaluates to."""
    if depth > MAX_PEEL_DEPTH:
        return
    if isinstance(expr, Cast):
        yield from _escaping(cx, expr.expr, scope, depth + 1)
    elif isinstance(expr, AddrOf):
        target = expr.expr
        if isinstance(target, PathExpr) and target.local_id in scope:
            yield expr
    elif isinstance(expr, BlockExpr):
        yield from _escaping_block(cx, expr.block, scope, depth + 1)
    elif isinstance(expr, If):
        yield from _escaping_block(cx, expr.then, scope, depth + 1)
        if expr.orelse is not None:
            yield from _escaping(cx, expr.orelse, scope, depth + 1)
    elif isinstance(expr, Match):
        for arm in expr.arms:
            yield from _escaping(cx, arm.body, scope, depth + 1)


def _escaping_block(cx: LintContext, block: Block, scope: set[int], depth: int) -> Iterator[AddrOf]:
    # The nested block's own returns are checked here, against its own scope.
    if block.hir_id not in cx.visited_blocks:
        cx.visited_blocks.add(block.hir_id)
        _check_returns(cx, block, block_locals(block))
    if block.expr is not None:
        yield from _escaping(cx, block.expr, scope | block_locals(block), depth)


def _report(cx: LintContext, addr: AddrOf) -> None:
    cx.emit(
        RETURN_STACK_ADDRESS,
        addr.span,
        "returning the address of a local variable",
        "the variable lives on the stack and is dropped when its block ends",
    )


def _check_returns(cx: LintContext, block: Block, scope: set[int]) -> None:
    if not scope:
        return
    for ret in _returns(block):
        for addr in _escaping(cx, ret.value, scope):
            _report(cx, addr)


def check_block(cx: LintContext, block: Block) -> None:
    if block.hir_id in cx.visited_blocks:
        return
    cx.visited_blocks.add(block.hir_id)

    scope = block_locals(block)
    _check_returns(cx, block, scope)
    if block.expr is not None:
        for addr in _escaping(cx, block.expr, scope):
            _report(cx, addr)
