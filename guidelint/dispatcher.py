"""Traversal Dispatcher.

``GuidelinesPass`` walks one unit exactly once and routes every node to the
checkers interested in it. Hook order per node kind:

- unit root: resolve configured functions, fold in extern-block
  declarations, seed the blocking denylist, index local data types
- item: foreign-layout check, then descend (functions open a frame)
- function: async-blocking check over the body, pointer frame
- call: NonReentrant, MemUnsafe, LibLoading, MemAlloc, Free membership,
  then string-to-foreign and char-range regardless of category
- other expression: async blocks, macro-produced unsafe, pointer derefs
- expression post-order: pointer reassignment
- local binding: pointer initialiser, unconstrained literal
- block: stack-escape analysis
"""

from collections.abc import Iterator

from guidelint.context import FnFrame, LintContext, fn_def_id
from guidelint.hir import (
    AdtItem,
    Assign,
    Block,
    Call,
    Expr,
    FnItem,
    ForeignItem,
    ForeignMod,
    Item,
    Local,
    MethodCall,
    Unit,
)
from guidelint.resolver import (
    CHAR_CONVERSIONS,
    CONFIGURED_CATEGORIES,
    NON_NULL_CONSTRUCTORS,
    NULL_POINTER_CONSTRUCTORS,
    FunctionCategory,
    resolve_paths,
)
from guidelint.rules import (
    blocking_op_in_async,
    extern_without_repr,
    fallible_memory_allocation,
    functions,
    invalid_char_range,
    passing_string_to_c_functions,
    ptr,
    return_stack_address,
    unconstrained_numeric_literal,
    unsafe_block_in_proc_macro,
    untrusted_lib_loading,
)
from guidelint.utils.logging import logger
from guidelint.visit import ITEM_TYPES, Visitor, child_nodes


def iter_items(unit: Unit) -> Iterator[Item]:
    """Every item of the unit, including items nested in modules, impls and bodies."""
    stack: list = list(reversed(unit.items))
    while stack:
        node = stack.pop()
        if isinstance(node, ITEM_TYPES):
            yield node
        stack.extend(reversed(child_nodes(node)))


def foreign_items(unit: Unit) -> list[ForeignItem]:
    return [fi for item in iter_items(unit) if isinstance(item, ForeignMod) for fi in item.items]


class GuidelinesPass(Visitor):
    """One traversal of one unit; owns nothing beyond its ``LintContext``."""

    def __init__(self, cx: LintContext):
        self.cx = cx

    def run(self) -> None:
        self.check_unit(self.cx.unit)
        self.visit_unit(self.cx.unit)

    # -- unit -----------------------------------------------------------------

    def check_unit(self, unit: Unit) -> None:
        cx = self.cx
        namespace = unit.namespace
        declared = foreign_items(unit)
        for category in CONFIGURED_CATEGORIES:
            function_set = cx.fns(category)
            function_set.resolve(namespace)
            function_set.add_foreign_items(declared)
            logger.debug(
                "{category}: {patterns} patterns, {ids} functions",
                category=category.value,
                patterns=len(function_set.patterns),
                ids=len(function_set.ids),
            )

        blocking_op_in_async.init_blacklist_ids(cx)

        cx.null_ctor_ids = resolve_paths(NULL_POINTER_CONSTRUCTORS, namespace)
        cx.non_null_ctor_ids = resolve_paths(NON_NULL_CONSTRUCTORS, namespace)
        cx.char_conv_ids = resolve_paths(CHAR_CONVERSIONS, namespace)
        cx.adts = {item.def_id: item for item in iter_items(unit) if isinstance(item, AdtItem)}

    # -- items ----------------------------------------------------------------

    def visit_item(self, item: Item) -> None:
        extern_without_repr.check_item(self.cx, item)
        super().visit_item(item)

    def visit_fn(self, fn: FnItem) -> None:
        cx = self.cx
        blocking_op_in_async.check_fn(cx, fn)
        cx.frames.append(FnFrame(fn))
        try:
            ptr.enter_fn(cx, fn)
            super().visit_fn(fn)
        finally:
            cx.frames.pop()

    # -- statements -----------------------------------------------------------

    def visit_block(self, block: Block) -> None:
        return_stack_address.check_block(self.cx, block)
        super().visit_block(block)

    def visit_local(self, local: Local) -> None:
        ptr.check_local(self.cx, local)
        unconstrained_numeric_literal.check_local(self.cx, local)
        super().visit_local(local)

    # -- expressions ----------------------------------------------------------

    def visit_expr(self, expr: Expr) -> None:
        self.check_expr(expr)
        super().visit_expr(expr)
        self.check_expr_post(expr)

    def check_expr(self, expr: Expr) -> None:
        cx = self.cx
        if isinstance(expr, (Call, MethodCall)):
            self.check_call(expr)
            return
        blocking_op_in_async.check_expr(cx, expr)
        unsafe_block_in_proc_macro.check_expr(cx, expr)
        ptr.check_expr(cx, expr)

    def check_call(self, expr: Call | MethodCall) -> None:
        cx = self.cx
        def_id = fn_def_id(expr)
        if cx.is_in(FunctionCategory.NON_REENTRANT, def_id):
            functions.lint_non_reentrant_fns(cx, expr)
        if cx.is_in(FunctionCategory.MEM_UNSAFE, def_id):
            functions.lint_mem_unsafe_fns(cx, expr)
        if cx.is_in(FunctionCategory.LIB_LOADING, def_id):
            untrusted_lib_loading.check_lib_loading(cx, expr)
        if cx.is_in(FunctionCategory.MEM_ALLOC, def_id):
            fallible_memory_allocation.check_alloc(cx, expr)
        ptr.check_call(cx, expr, is_free=cx.is_in(FunctionCategory.FREE, def_id))
        if isinstance(expr, Call):
            passing_string_to_c_functions.check_call(cx, expr)
        invalid_char_range.check_call(cx, expr)

    def check_expr_post(self, expr: Expr) -> None:
        if isinstance(expr, Assign):
            ptr.check_assign(self.cx, expr)
