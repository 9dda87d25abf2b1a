"""Untrusted Library Loading Analyzer.

Flags dynamic library loads (``dlopen``, ``libloading::Library::new``)
whose path argument originates from an IO-category call in the same
function body with no validating branch in between:

    let mut name = String::new();
    std::io::stdin().read_line(&mut name)?;
    let lib = unsafe { Library::new(name.trim()) };   // flagged

Tracing follows direct ``let`` initialisers and plain reassignments
backwards from the load. Values crossing a function boundary (parameters,
return values of non-IO calls) are unknown and never flagged.
"""

from guidelint.context import LintContext, fn_def_id
from guidelint.hir import (
    AddrOf,
    Assign,
    Block,
    BlockExpr,
    Call,
    Cast,
    Expr,
    Local,
    MethodCall,
    PathExpr,
    Try,
)
from guidelint.lints import UNTRUSTED_LIB_LOADING
from guidelint.resolver import FunctionCategory
from guidelint.visit import (
    ITEM_TYPES,
    child_nodes,
    dominating_conditions,
    find_ancestors,
    walk_exprs,
)

MAX_TRACE_DEPTH = 32

# Methods that only view or convert their receiver.
PASS_THROUGH_METHODS = frozenset(
    {
        "unwrap",
        "expect",
        "unwrap_or_default",
        "as_str",
        "as_ref",
        "as_path",
        "as_os_str",
        "as_bytes",
        "as_ptr",
        "clone",
        "to_owned",
        "to_string",
        "to_str",
        "trim",
        "trim_end",
        "into",
    }
)

# Single-argument constructors that wrap their argument.
WRAPPING_CONSTRUCTORS = frozenset({"new", "from"})


def _is_io_call(cx: LintContext, expr: Expr) -> bool:
    return isinstance(expr, (Call, MethodCall)) and cx.is_in(FunctionCategory.IO, fn_def_id(expr))


def _peel_value(cx: LintContext, expr: Expr) -> Expr:
    """Strip conversions until an IO call, a local or something opaque remains."""
    for _ in range(MAX_TRACE_DEPTH):
        if _is_io_call(cx, expr):
            return expr
        if isinstance(expr, (Cast, Try)):
            expr = expr.expr
        elif isinstance(expr, AddrOf) and not expr.mutable:
            expr = expr.expr
        elif isinstance(expr, MethodCall) and expr.method in PASS_THROUGH_METHODS:
            expr = expr.receiver
        elif (
            isinstance(expr, Call)
            and isinstance(expr.func, PathExpr)
            and expr.func.segments[-1] in WRAPPING_CONSTRUCTORS
            and len(expr.args) == 1
        ):
            expr = expr.args[0]
        elif isinstance(expr, BlockExpr) and not expr.block.stmts and expr.block.expr is not None:
            expr = expr.block.expr
        else:
            return expr
    return expr


def _iter_nodes(body: Block):
    """Every node of ``body`` in pre-order, not entering nested items."""
    stack: list = [body]
    while stack:
        node = stack.pop()
        if isinstance(node, ITEM_TYPES):
            continue
        yield node
        stack.extend(reversed(child_nodes(node)))


def _mentions(expr: Expr, hir_ids: set[int]) -> bool:
    return any(
        isinstance(e, PathExpr) and e.local_id in hir_ids
        for e in walk_exprs(expr, into_closures=False)
    )


class _Tracer:
    """Backward walk over the definitions of one function body."""

    def __init__(self, cx: LintContext, body: Block, load: Expr):
        self.cx = cx
        self.positions = {id(n): i for i, n in enumerate(_iter_nodes(body))}
        self.limit = self.positions.get(id(load), -1)
        self.enclosing = {id(n) for n in find_ancestors(body, load) or ()}
        self.nodes = [
            n
            for n in _iter_nodes(body)
            if self.positions.get(id(n), self.limit) < self.limit and id(n) not in self.enclosing
        ]

    def passed_to_io(self, hir_id: int) -> bool:
        """``read_line(&mut buf)`` style writes into the binding before the load."""
        for node in self.nodes:
            if not isinstance(node, (Call, MethodCall)) or not _is_io_call(self.cx, node):
                continue
            for arg in node.args:
                if (
                    isinstance(arg, AddrOf)
                    and arg.mutable
                    and isinstance(arg.expr, PathExpr)
                    and arg.expr.local_id == hir_id
                ):
                    return True
        return False

    def latest_definition(self, hir_id: int) -> Expr | None:
        """Value of the last ``let`` or ``=`` for the binding that precedes the load."""
        best, best_pos = None, -1
        for node in self.nodes:
            value = None
            if isinstance(node, Local) and node.init is not None:
                if any(b.hir_id == hir_id for b in node.bindings):
                    value = node.init
            elif isinstance(node, Assign) and node.op is None:
                if isinstance(node.lhs, PathExpr) and node.lhs.local_id == hir_id:
                    value = node.rhs
            if value is not None and self.positions[id(node)] > best_pos:
                best, best_pos = value, self.positions[id(node)]
        return best

    def io_chain(self, arg: Expr) -> set[int] | None:
        """Bindings linking ``arg`` to an IO call, or ``None`` when it is not IO-derived."""
        chain: set[int] = set()
        current = _peel_value(self.cx, arg)
        for _ in range(MAX_TRACE_DEPTH):
            if _is_io_call(self.cx, current):
                return chain
            if not isinstance(current, PathExpr) or current.local_id is None:
                return None
            hir_id = current.local_id
            if hir_id in chain:
                return None
            chain.add(hir_id)
            if self.passed_to_io(hir_id):
                return chain
            value = self.latest_definition(hir_id)
            if value is None:
                return None
            current = _peel_value(self.cx, value)
        return None


def check_lib_loading(cx: LintContext, expr: Call | MethodCall) -> None:
    """Flag a library load whose path comes from IO without validation."""
    frame = cx.frame
    if frame is None or not expr.args:
        return

    body = frame.fn.body
    tracer = _Tracer(cx, body, expr)
    chain = tracer.io_chain(expr.args[0])
    if chain is None:
        return

    for cond in dominating_conditions(body, expr):
        if chain and _mentions(cond, chain):
            return

    cx.emit(
        UNTRUSTED_LIB_LOADING,
        expr.span,
        "loading a dynamic library from a path read from an untrusted source",
        "validate the path against a fixed set of trusted locations before loading it",
    )
