"""Depth-first walking of the semantic tree.

``Visitor`` mirrors the compiler's intra-visit pattern: every ``visit_*``
method defaults to walking the node's children in source order, so a
subclass overrides only the node kinds it cares about and calls
``super()`` to keep descending.

The free functions below are the small structural queries shared by the
rules (expression iteration, cast peeling, ancestor chains and dominating
expressions).
"""

from __future__ import annotations

from collections.abc import Iterator

from guidelint.hir import (
    AddrOf,
    AdtItem,
    Arm,
    Assign,
    Await,
    Binary,
    Block,
    BlockExpr,
    Call,
    Cast,
    Closure,
    Expr,
    Field,
    FnItem,
    ForeignMod,
    If,
    ImplItem,
    Index,
    Item,
    Local,
    Loop,
    Match,
    MethodCall,
    ModItem,
    Opaque,
    Return,
    StaticItem,
    Try,
    Tuple,
    Unary,
    Unit,
)

ITEM_TYPES = (FnItem, ForeignMod, AdtItem, StaticItem, ImplItem, ModItem)


def child_nodes(node) -> list:
    """Direct children of any tree node, in source order."""
    if isinstance(node, FnItem):
        return [node.body]
    if isinstance(node, (ImplItem, ModItem)):
        return list(node.items)
    if isinstance(node, StaticItem):
        return [node.value] if node.value is not None else []
    if isinstance(node, (ForeignMod, AdtItem)):
        return []
    if isinstance(node, Local):
        return [n for n in (node.init, node.orelse) if n is not None]
    if isinstance(node, Block):
        children = list(node.stmts)
        if node.expr is not None:
            children.append(node.expr)
        return children
    if isinstance(node, Arm):
        return [n for n in (node.guard, node.body) if n is not None]
    return _expr_children(node)


def _expr_children(expr: Expr) -> list:
    if isinstance(expr, Call):
        return [expr.func, *expr.args]
    if isinstance(expr, MethodCall):
        return [expr.receiver, *expr.args]
    if isinstance(expr, (Cast, AddrOf, Unary, Field, Try, Await)):
        return [expr.expr]
    if isinstance(expr, Binary):
        return [expr.lhs, expr.rhs]
    if isinstance(expr, Assign):
        return [expr.lhs, expr.rhs]
    if isinstance(expr, BlockExpr):
        return [expr.block]
    if isinstance(expr, If):
        return [n for n in (expr.cond, expr.then, expr.orelse) if n is not None]
    if isinstance(expr, Loop):
        return [n for n in (expr.iterable, expr.cond, expr.body) if n is not None]
    if isinstance(expr, Match):
        return [expr.scrutinee, *expr.arms]
    if isinstance(expr, Return):
        return [expr.value] if expr.value is not None else []
    if isinstance(expr, Closure):
        return [expr.body]
    if isinstance(expr, Index):
        return [expr.expr, expr.index]
    if isinstance(expr, Tuple):
        return list(expr.elements)
    if isinstance(expr, Opaque):
        return list(expr.children)
    return []


class Visitor:
    """Pre-order walker; override ``visit_*`` and call ``super()`` to descend."""

    def visit_unit(self, unit: Unit) -> None:
        for item in unit.items:
            self.visit_item(item)

    def visit_item(self, item: Item) -> None:
        if isinstance(item, FnItem):
            self.visit_fn(item)
            return
        self._walk(item)

    def visit_fn(self, fn: FnItem) -> None:
        self.visit_block(fn.body)

    def visit_block(self, block: Block) -> None:
        self._walk(block)

    def visit_local(self, local: Local) -> None:
        self._walk(local)

    def visit_expr(self, expr: Expr) -> None:
        self._walk(expr)

    def visit_arm(self, arm: Arm) -> None:
        self._walk(arm)

    def _walk(self, node) -> None:
        for child in child_nodes(node):
            self._dispatch(child)

    def _dispatch(self, node) -> None:
        if isinstance(node, Expr):
            self.visit_expr(node)
        elif isinstance(node, Block):
            self.visit_block(node)
        elif isinstance(node, Local):
            self.visit_local(node)
        elif isinstance(node, Arm):
            self.visit_arm(node)
        elif isinstance(node, ITEM_TYPES):
            self.visit_item(node)


def walk_exprs(
    root,
    *,
    into_closures: bool = True,
    into_async: bool = True,
    into_items: bool = False,
) -> Iterator[Expr]:
    """Yield every expression beneath ``root`` (inclusive) in pre-order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, ITEM_TYPES) and node is not root and not into_items:
            continue
        if isinstance(node, Expr):
            yield node
            if isinstance(node, Closure) and node is not root:
                if node.is_async and not into_async:
                    continue
                if not node.is_async and not into_closures:
                    continue
        stack.extend(reversed(child_nodes(node)))


def peel_casts(expr: Expr) -> Expr:
    """Return the innermost non-cast expression of ``a as T as U``."""
    while isinstance(expr, Cast):
        expr = expr.expr
    return expr


def find_ancestors(root, target) -> list | None:
    """Chain of nodes from ``root`` down to ``target`` (both inclusive)."""
    if root is target:
        return [root]
    stack: list[tuple[object, list]] = [(root, [root])]
    while stack:
        node, chain = stack.pop()
        for child in child_nodes(node):
            if child is target:
                return [*chain, child]
            stack.append((child, [*chain, child]))
    return None


def dominating_roots(body: Block, target) -> Iterator[tuple[object, bool]]:
    """Nodes whose evaluation precedes ``target`` on every structured path.

    Yields ``(node, is_condition)``. A node dominates ``target`` when it is
    an earlier statement of one of the target's enclosing blocks, or (with
    ``is_condition`` set) the condition of an enclosing ``if`` or ``while``
    whose body holds the target, or the scrutinee or arm guard of an
    enclosing ``match``. Innermost contexts come first.
    """
    chain = find_ancestors(body, target)
    if chain is None:
        return
    for parent, child in reversed(list(zip(chain, chain[1:]))):
        if isinstance(parent, Block):
            if child is parent.expr:
                for stmt in parent.stmts:
                    yield stmt, False
            else:
                for stmt in parent.stmts:
                    if stmt is child:
                        break
                    yield stmt, False
        elif isinstance(parent, If) and child is not parent.cond:
            yield parent.cond, True
        elif isinstance(parent, Loop) and child is parent.body:
            if parent.cond is not None:
                yield parent.cond, True
        elif isinstance(parent, Match) and child is not parent.scrutinee:
            yield parent.scrutinee, True
        elif isinstance(parent, Arm) and child is parent.body and parent.guard is not None:
            yield parent.guard, True
        elif isinstance(parent, Local) and child is parent.orelse and parent.init is not None:
            yield parent.init, True


def dominating_conditions(body: Block, target) -> Iterator[Expr]:
    """Branch conditions evaluated before ``target`` is reached.

    Covers the guards of enclosing branches as well as the conditions of
    branches in earlier statements (``if !ok(&x) { return; }``).
    """
    for node, is_condition in dominating_roots(body, target):
        if is_condition:
            yield node
            continue
        for expr in walk_exprs(node, into_closures=False):
            if isinstance(expr, If):
                yield expr.cond
            elif isinstance(expr, Loop) and expr.cond is not None:
                yield expr.cond
            elif isinstance(expr, Match):
                yield expr.scrutinee
