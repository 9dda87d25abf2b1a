"""``let x = 10;`` leaves the literal's type to inference."""

from guidelint.context import LintContext
from guidelint.hir import Lit, LitKind, Local, Unary, UnOp
from guidelint.lints import UNCONSTRAINED_NUMERIC_LITERAL


def check_local(cx: LintContext, local: Local) -> None:
    if local.ty is not None or local.init is None:
        return
    init = local.init
    if isinstance(init, Unary) and init.op is UnOp.NEG:
        init = init.expr
    if not isinstance(init, Lit) or init.kind not in (LitKind.INT, LitKind.FLOAT):
        return
    if init.suffix:
        return
    kind = "integer" if init.kind is LitKind.INT else "float"
    cx.emit(
        UNCONSTRAINED_NUMERIC_LITERAL,
        local.init.span,
        f"type of this {kind} literal is left to inference",
        "add a type suffix such as `i32` or `f64`, or annotate the binding",
    )
