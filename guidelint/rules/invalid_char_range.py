"""Out-of-range integer to char conversion.

``char::from_u32(0xD800)`` and friends with a constant argument that can
never be a Unicode scalar value: negative, above ``0x10FFFF`` or inside the
surrogate range.
"""

import operator

from guidelint.context import LintContext, fn_def_id
from guidelint.hir import (
    Binary,
    BinOp,
    BlockExpr,
    Call,
    Cast,
    Expr,
    Lit,
    LitKind,
    MethodCall,
    PathExpr,
    ResKind,
    TyKind,
    Unary,
    UnOp,
)
from guidelint.lints import INVALID_CHAR_RANGE

MAX_CODEPOINT = 0x10FFFF
SURROGATES = range(0xD800, 0xDFFF + 1)
MAX_FOLD_DEPTH = 32

_ARITHMETIC = {
    BinOp.ADD: operator.add,
    BinOp.SUB: operator.sub,
    BinOp.MUL: operator.mul,
    BinOp.BIT_AND: operator.and_,
    BinOp.BIT_OR: operator.or_,
    BinOp.BIT_XOR: operator.xor,
    BinOp.SHL: operator.lshift,
    BinOp.SHR: operator.rshift,
}

_UNSIGNED_WIDTHS = {"u8": 8, "u16": 16, "u32": 32, "u64": 64, "u128": 128}


def const_fold(expr: Expr, depth: int = 0) -> int | None:
    """Integer value of ``expr`` when it is a compile-time constant."""
    if depth > MAX_FOLD_DEPTH:
        return None
    if isinstance(expr, Lit):
        return expr.value if expr.kind is LitKind.INT else None
    if isinstance(expr, PathExpr):
        return expr.res.const_value if expr.res.kind is ResKind.DEF else None
    if isinstance(expr, Unary) and expr.op is UnOp.NEG:
        value = const_fold(expr.expr, depth + 1)
        return -value if value is not None else None
    if isinstance(expr, Cast):
        value = const_fold(expr.expr, depth + 1)
        width = _UNSIGNED_WIDTHS.get(expr.target.name)
        if value is not None and expr.target.kind is TyKind.PRIMITIVE and width:
            value &= (1 << width) - 1
        return value
    if isinstance(expr, BlockExpr) and not expr.block.stmts and expr.block.expr is not None:
        return const_fold(expr.block.expr, depth + 1)
    if isinstance(expr, Binary):
        lhs = const_fold(expr.lhs, depth + 1)
        rhs = const_fold(expr.rhs, depth + 1)
        if lhs is None or rhs is None:
            return None
        if expr.op in (BinOp.DIV, BinOp.REM):
            if rhs == 0:
                return None
            # Rust integer division truncates toward zero.
            quotient = abs(lhs) // abs(rhs) * (1 if (lhs < 0) == (rhs < 0) else -1)
            return quotient if expr.op is BinOp.DIV else lhs - quotient * rhs
        op = _ARITHMETIC.get(expr.op)
        if op is None or (expr.op in (BinOp.SHL, BinOp.SHR) and not 0 <= rhs < 128):
            return None
        return op(lhs, rhs)
    return None


def is_valid_char(value: int) -> bool:
    return 0 <= value <= MAX_CODEPOINT and value not in SURROGATES


def check_call(cx: LintContext, expr: Call | MethodCall) -> None:
    if fn_def_id(expr) not in cx.char_conv_ids or len(expr.args) != 1:
        return
    value = const_fold(expr.args[0])
    if value is None or is_valid_char(value):
        return
    cx.emit(
        INVALID_CHAR_RANGE,
        expr.span,
        f"converting {value:#x} to char, which is not a valid Unicode scalar value",
        "valid values are 0x0..=0xD7FF and 0xE000..=0x10FFFF",
    )
