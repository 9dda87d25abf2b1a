"""Call-site lints that need nothing beyond the callee's identity.

- mem_unsafe_functions: calls into configured memory manipulation functions
  (``memcpy``, ``strcpy``, ...) that do not check bounds.
- non_reentrant_functions: calls into configured functions that keep hidden
  static state (``localtime``, ``strtok``, ...).
"""

from guidelint.context import LintContext
from guidelint.hir import Expr
from guidelint.lints import MEM_UNSAFE_FUNCTIONS, NON_REENTRANT_FUNCTIONS


def lint_non_reentrant_fns(cx: LintContext, expr: Expr) -> None:
    cx.emit(
        NON_REENTRANT_FUNCTIONS,
        expr.span,
        "use of non-reentrant function",
        "consider using its reentrant counterpart",
    )


def lint_mem_unsafe_fns(cx: LintContext, expr: Expr) -> None:
    cx.emit(
        MEM_UNSAFE_FUNCTIONS,
        expr.span,
        "use of potentially dangerous memory manipulation function",
        "consider using its safe version",
    )
