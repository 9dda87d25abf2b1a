"""Per-unit shared state of one guideline pass.

A ``LintContext`` is created for exactly one unit, threaded through every
checker, and dropped when the pass ends. Nothing in it survives across
units.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from guidelint.config import GuidelinesConfig
from guidelint.diagnostics import DiagnosticSink
from guidelint.hir import (
    AdtItem,
    Call,
    DefId,
    DefKind,
    Expr,
    FnItem,
    MethodCall,
    PathExpr,
    ResKind,
    Span,
    Unit,
)
from guidelint.lints import Lint
from guidelint.resolver import ConfiguredFunctionSet, FunctionCategory, build_function_sets


class PointerOrigin(Enum):
    UNINITIALIZED = "uninitialized"
    NULL_LITERAL = "null_literal"
    ASSIGNED_NON_NULL = "assigned_non_null"


@dataclass
class PointerBindingState:
    origin: PointerOrigin = PointerOrigin.UNINITIALIZED
    freed: bool = False


@dataclass
class FnFrame:
    """Function body currently being traversed."""

    fn: FnItem
    pointers: dict[int, PointerBindingState] = field(default_factory=dict)
    # hir ids of `*p` nodes that are the target of a plain assignment
    written_derefs: set[int] = field(default_factory=set)

    @property
    def is_async(self) -> bool:
        return self.fn.sig.is_async


@dataclass
class LintContext:
    unit: Unit
    config: GuidelinesConfig
    sink: DiagnosticSink = field(default_factory=DiagnosticSink)
    function_sets: dict[FunctionCategory, ConfiguredFunctionSet] = field(default_factory=dict)
    null_ctor_ids: set[DefId] = field(default_factory=set)
    non_null_ctor_ids: set[DefId] = field(default_factory=set)
    char_conv_ids: set[DefId] = field(default_factory=set)
    adts: dict[DefId, AdtItem] = field(default_factory=dict)
    # Call sites of procedural macros already reported.
    macro_call_sites: set[Span] = field(default_factory=set)
    # Blocks already examined for returned stack addresses.
    visited_blocks: set[int] = field(default_factory=set)
    frames: list[FnFrame] = field(default_factory=list)

    def __post_init__(self):
        if not self.function_sets:
            self.function_sets = build_function_sets(self.config)

    def fns(self, category: FunctionCategory) -> ConfiguredFunctionSet:
        return self.function_sets[category]

    def is_in(self, category: FunctionCategory, def_id: DefId | None) -> bool:
        return def_id is not None and def_id in self.function_sets[category]

    @property
    def frame(self) -> FnFrame | None:
        return self.frames[-1] if self.frames else None

    def emit(self, lint: Lint, span: Span, message: str, help: str | None = None) -> None:
        self.sink.emit(lint, span, message, help)


def fn_def_id(expr: Expr) -> DefId | None:
    """Identifier of the function a call expression invokes, if resolved."""
    if isinstance(expr, Call):
        func = expr.func
        if isinstance(func, PathExpr) and func.res.kind is ResKind.DEF:
            return func.res.def_id
        return None
    if isinstance(expr, MethodCall):
        return expr.def_id
    return None


def is_foreign_fn_call(expr: Expr) -> bool:
    """Whether ``expr`` calls a function declared in a foreign-interface block."""
    return (
        isinstance(expr, Call)
        and isinstance(expr.func, PathExpr)
        and expr.func.res.kind is ResKind.DEF
        and expr.func.res.def_kind is DefKind.FOREIGN_FN
    )
