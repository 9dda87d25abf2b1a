"""Checkers of the guideline lint group, one module per concern."""

from . import (
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

__all__ = [
    "blocking_op_in_async",
    "extern_without_repr",
    "fallible_memory_allocation",
    "functions",
    "invalid_char_range",
    "passing_string_to_c_functions",
    "ptr",
    "return_stack_address",
    "unconstrained_numeric_literal",
    "unsafe_block_in_proc_macro",
    "untrusted_lib_loading",
]
