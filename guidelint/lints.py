"""Declarations of every guideline lint.

Each ``Lint`` carries the metadata a reporter needs (group, severity,
CWE, one-line description). Rule modules import their lint from here and
hand it to ``LintContext.emit``.
"""

from dataclasses import dataclass
from enum import Enum


class Severity(Enum):
    """Standardized severity levels."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class LintGroup(Enum):
    NURSERY = "nursery"
    PEDANTIC = "pedantic"


@dataclass(frozen=True)
class Lint:
    """Metadata of one rule."""

    name: str
    description: str
    group: LintGroup = LintGroup.NURSERY
    severity: Severity = Severity.MEDIUM
    cwe_id: str | None = None

    def __str__(self) -> str:
        return self.name


MEM_UNSAFE_FUNCTIONS = Lint(
    "mem_unsafe_functions",
    "use of potentially dangerous external functions",
    severity=Severity.HIGH,
    cwe_id="CWE-676",
)

UNTRUSTED_LIB_LOADING = Lint(
    "untrusted_lib_loading",
    "attempt to load dynamic library from untrusted source",
    severity=Severity.CRITICAL,
    cwe_id="CWE-114",
)

PASSING_STRING_TO_C_FUNCTIONS = Lint(
    "passing_string_to_c_functions",
    "passing string or str to extern C function",
    severity=Severity.HIGH,
    cwe_id="CWE-170",
)

FALLIBLE_MEMORY_ALLOCATION = Lint(
    "fallible_memory_allocation",
    "memory allocation without checking arguments and result",
    severity=Severity.MEDIUM,
    cwe_id="CWE-789",
)

BLOCKING_OP_IN_ASYNC = Lint(
    "blocking_op_in_async",
    "calling blocking functions in an async context",
    severity=Severity.MEDIUM,
    cwe_id="CWE-833",
)

UNSAFE_BLOCK_IN_PROC_MACRO = Lint(
    "unsafe_block_in_proc_macro",
    "using unsafe block in procedural macro's definition",
    severity=Severity.HIGH,
    cwe_id="CWE-1395",
)

EXTERN_WITHOUT_REPR = Lint(
    "extern_without_repr",
    "should use repr to specify data layout when a type is used in FFI",
    group=LintGroup.PEDANTIC,
    severity=Severity.MEDIUM,
    cwe_id="CWE-188",
)

NON_REENTRANT_FUNCTIONS = Lint(
    "non_reentrant_functions",
    "this function is a non-reentrant function",
    severity=Severity.MEDIUM,
    cwe_id="CWE-663",
)

NULL_PTR_DEREFERENCE = Lint(
    "null_ptr_dereference",
    "dereferencing null pointers",
    severity=Severity.CRITICAL,
    cwe_id="CWE-476",
)

PTR_DOUBLE_FREE = Lint(
    "ptr_double_free",
    "pointer double free",
    severity=Severity.CRITICAL,
    cwe_id="CWE-415",
)

DANGLING_PTR_DEREFERENCE = Lint(
    "dangling_ptr_dereference",
    "dereferencing dangling pointers",
    severity=Severity.CRITICAL,
    cwe_id="CWE-416",
)

RETURN_STACK_ADDRESS = Lint(
    "return_stack_address",
    "returning pointer that points to stack address",
    severity=Severity.HIGH,
    cwe_id="CWE-562",
)

INVALID_CHAR_RANGE = Lint(
    "invalid_char_range",
    "converting to char from an out-of-range unsigned int",
    severity=Severity.LOW,
    cwe_id="CWE-704",
)

UNCONSTRAINED_NUMERIC_LITERAL = Lint(
    "unconstrained_numeric_literal",
    "usage of unconstrained numeric literals in variable initialization",
    severity=Severity.INFO,
)

ALL_LINTS: tuple[Lint, ...] = (
    MEM_UNSAFE_FUNCTIONS,
    UNTRUSTED_LIB_LOADING,
    PASSING_STRING_TO_C_FUNCTIONS,
    FALLIBLE_MEMORY_ALLOCATION,
    BLOCKING_OP_IN_ASYNC,
    UNSAFE_BLOCK_IN_PROC_MACRO,
    EXTERN_WITHOUT_REPR,
    NON_REENTRANT_FUNCTIONS,
    NULL_PTR_DEREFERENCE,
    PTR_DOUBLE_FREE,
    DANGLING_PTR_DEREFERENCE,
    RETURN_STACK_ADDRESS,
    INVALID_CHAR_RANGE,
    UNCONSTRAINED_NUMERIC_LITERAL,
)

LINTS_BY_NAME: dict[str, Lint] = {lint.name: lint for lint in ALL_LINTS}
