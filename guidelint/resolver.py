"""Function Identity Resolver.

Turns configured name patterns into canonical function identifiers. A
pattern takes one of two shapes, and a third strategy handles the unit's
own foreign declarations:

- ``QualifiedPattern``: ``krate::module::func``, resolved against the
  whole dependency closure (every match kept).
- ``BarePattern``: ``func``, resolved as a member of the default foreign
  function namespace ``libc`` (every match kept).
- Local foreign declaration: an extern-block function whose name equals a
  bare pattern adds its own identifier directly.

Zero matches are expected (configurations are shared between units that
do not link every function) and are never an error.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from guidelint.config import GuidelinesConfig
from guidelint.hir import DefId, ForeignItem, Namespace
from guidelint.utils.logging import logger

DEFAULT_FOREIGN_NAMESPACE = "libc"
PATH_SEPARATOR = "::"

_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FunctionCategory(Enum):
    MEM_UNSAFE = "mem_unsafe"
    MEM_ALLOC = "mem_alloc"
    IO = "io"
    LIB_LOADING = "lib_loading"
    BLOCKING = "blocking"
    NON_REENTRANT = "non_reentrant"
    FREE = "free"


# Categories driven by user configuration, in resolution order.
CONFIGURED_CATEGORIES: dict[FunctionCategory, str] = {
    FunctionCategory.MEM_UNSAFE: "mem_unsafe_functions",
    FunctionCategory.MEM_ALLOC: "mem_alloc_functions",
    FunctionCategory.IO: "io_functions",
    FunctionCategory.LIB_LOADING: "lib_loading_functions",
    FunctionCategory.NON_REENTRANT: "non_reentrant_functions",
    FunctionCategory.FREE: "mem_free_functions",
}

# Blocking primitives always denied inside async code.
BUILTIN_BLOCKING_FUNCTIONS: tuple[str, ...] = (
    "std::thread::sleep",
    "std::thread::sleep_ms",
    "std::thread::park",
    "std::thread::park_timeout",
    "std::thread::JoinHandle::join",
    "std::sync::Mutex::lock",
    "std::sync::RwLock::read",
    "std::sync::RwLock::write",
    "std::sync::Condvar::wait",
    "std::sync::Condvar::wait_while",
    "std::sync::Condvar::wait_timeout",
    "std::sync::Barrier::wait",
    "std::sync::mpsc::Receiver::recv",
    "std::sync::mpsc::Receiver::recv_timeout",
    "std::sync::mpsc::SyncSender::send",
    "std::net::TcpStream::connect",
    "std::net::TcpListener::accept",
    "std::process::Command::output",
    "std::process::Child::wait",
)

NULL_POINTER_CONSTRUCTORS: tuple[str, ...] = (
    "std::ptr::null",
    "std::ptr::null_mut",
    "core::ptr::null",
    "core::ptr::null_mut",
)

CHAR_CONVERSIONS: tuple[str, ...] = (
    "char::from_u32",
    "char::from_u32_unchecked",
    "std::char::from_u32",
    "std::char::from_u32_unchecked",
    "core::char::from_u32",
    "core::char::from_u32_unchecked",
)

NON_NULL_CONSTRUCTORS: tuple[str, ...] = (
    "std::ptr::NonNull::new",
    "core::ptr::NonNull::new",
)


@dataclass(frozen=True)
class QualifiedPattern:
    segments: tuple[str, ...]

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(self.segments)


@dataclass(frozen=True)
class BarePattern:
    name: str

    def __str__(self) -> str:
        return self.name


Pattern = QualifiedPattern | BarePattern


def parse_pattern(text: str) -> Pattern | None:
    """Classify a configured name; malformed text yields ``None``."""
    text = text.strip()
    if not text:
        return None
    if PATH_SEPARATOR in text:
        segments = tuple(text.split(PATH_SEPARATOR))
        if all(_SEGMENT.match(seg) for seg in segments):
            return QualifiedPattern(segments)
        return None
    if _SEGMENT.match(text):
        return BarePattern(text)
    return None


def resolve_pattern(pattern: Pattern, namespace: Namespace) -> list[DefId]:
    """Every identifier the pattern names in the dependency closure."""
    if isinstance(pattern, QualifiedPattern):
        return namespace.resolve_path(pattern.segments)
    return namespace.resolve_path((DEFAULT_FOREIGN_NAMESPACE, pattern.name))


def parse_patterns(raw: Iterable[str], label: str = "") -> tuple[Pattern, ...]:
    """Parse a configured list, logging and skipping malformed entries."""
    patterns = []
    for text in raw:
        pattern = parse_pattern(text)
        if pattern is None:
            logger.warning(
                "Skipping malformed function pattern {pattern!r} in {label}",
                pattern=text,
                label=label or "configuration",
            )
            continue
        patterns.append(pattern)
    return tuple(patterns)


@dataclass
class ConfiguredFunctionSet:
    """Configured patterns of one category plus the identifiers they resolved to.

    NB: patterns and identifiers are not one-to-one; one pattern may
    resolve to several identifiers and several patterns to the same one.
    """

    category: FunctionCategory
    patterns: tuple[Pattern, ...] = ()
    ids: set[DefId] = field(default_factory=set)

    @classmethod
    def from_names(cls, category: FunctionCategory, names: Iterable[str]) -> ConfiguredFunctionSet:
        return cls(category, parse_patterns(names, category.value))

    @property
    def bare_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.patterns if isinstance(p, BarePattern))

    def resolve(self, namespace: Namespace) -> None:
        for pattern in self.patterns:
            matches = resolve_pattern(pattern, namespace)
            if not matches:
                logger.debug(
                    "{category} pattern {pattern} resolved to nothing",
                    category=self.category.value,
                    pattern=str(pattern),
                )
            self.ids.update(matches)

    def add_foreign_items(self, items: Iterable[ForeignItem]) -> None:
        """Add extern-block functions whose declared name equals a bare pattern."""
        names = self.bare_names
        for item in items:
            if item.is_fn and item.name in names:
                self.ids.add(item.def_id)

    def __contains__(self, def_id: object) -> bool:
        return def_id in self.ids

    def __iter__(self) -> Iterator[DefId]:
        return iter(self.ids)


def build_function_sets(config: GuidelinesConfig) -> dict[FunctionCategory, ConfiguredFunctionSet]:
    """One unresolved set per category; BLOCKING starts from built-ins."""
    sets = {
        category: ConfiguredFunctionSet.from_names(category, getattr(config, attr))
        for category, attr in CONFIGURED_CATEGORIES.items()
    }
    sets[FunctionCategory.BLOCKING] = ConfiguredFunctionSet.from_names(
        FunctionCategory.BLOCKING, BUILTIN_BLOCKING_FUNCTIONS
    )
    return sets


def resolve_paths(paths: Iterable[str], namespace: Namespace) -> set[DefId]:
    """Resolve a fixed list of qualified paths (built-in helper identities)."""
    ids: set[DefId] = set()
    for path in paths:
        pattern = parse_pattern(path)
        if pattern is not None:
            ids.update(resolve_pattern(pattern, namespace))
    return ids
