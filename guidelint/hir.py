"""Semantic tree model consumed by the guideline lints.

The host (a compiler front end, or ``guidelint.frontend`` for plain source
files) lowers one compiled unit into these nodes and supplies a namespace
that maps qualified paths to canonical function identifiers. The analysis
never mutates the tree.

Node families:
- Items: FnItem, ForeignMod/ForeignItem, AdtItem, ImplItem, ModItem, StaticItem
- Statements: Local, any Expr, any item
- Expressions: one dataclass per structural tag (Call, Cast, AddrOf, ...)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class MacroKind(Enum):
    """How a macro was invoked."""

    BANG = "bang"
    ATTR = "attr"
    DERIVE = "derive"


@dataclass(frozen=True)
class Expansion:
    """Macro expansion a span was produced by."""

    macro_name: str
    kind: MacroKind
    call_site: Span
    is_proc_macro: bool = True


@dataclass(frozen=True)
class Span:
    """Source range of a node."""

    file: str
    line: int
    column: int = 0
    end_line: int = 0
    end_column: int = 0
    expansion: Expansion | None = None

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    @property
    def from_proc_macro(self) -> bool:
        return self.expansion is not None and self.expansion.is_proc_macro


@dataclass(frozen=True, order=True)
class DefId:
    """Canonical identity of a definition within a unit and its dependencies."""

    krate: str
    index: int

    def __str__(self) -> str:
        return f"{self.krate}#{self.index}"


class DefKind(Enum):
    FN = "fn"
    FOREIGN_FN = "foreign_fn"
    ASSOC_FN = "assoc_fn"
    CONST = "const"
    STATIC = "static"
    STRUCT = "struct"
    ENUM = "enum"
    UNION = "union"
    OTHER = "other"


class ResKind(Enum):
    LOCAL = "local"
    DEF = "def"
    ERR = "err"


@dataclass(frozen=True)
class Res:
    """What a path expression resolved to."""

    kind: ResKind
    hir_id: int | None = None
    def_id: DefId | None = None
    def_kind: DefKind | None = None
    const_value: int | None = None

    @classmethod
    def local(cls, hir_id: int) -> Res:
        return cls(ResKind.LOCAL, hir_id=hir_id)

    @classmethod
    def definition(cls, def_id: DefId, def_kind: DefKind, const_value: int | None = None) -> Res:
        return cls(ResKind.DEF, def_id=def_id, def_kind=def_kind, const_value=const_value)


UNRESOLVED = Res(ResKind.ERR)


class TyKind(Enum):
    PRIMITIVE = "primitive"
    RAW_PTR = "raw_ptr"
    REF = "ref"
    ADT = "adt"
    STR = "str"
    STRING = "string"
    SLICE = "slice"
    ARRAY = "array"
    INFER = "infer"
    OTHER = "other"


@dataclass(frozen=True)
class Ty:
    """A (possibly partial) type as written or inferred by the host."""

    kind: TyKind
    name: str = ""
    inner: Ty | None = None
    mutable: bool = False
    def_id: DefId | None = None
    span: Span | None = field(default=None, compare=False)

    @property
    def is_raw_ptr(self) -> bool:
        return self.kind is TyKind.RAW_PTR

    @property
    def is_native_string(self) -> bool:
        """``String``, ``str`` or a reference to either."""
        ty = self
        while ty.kind is TyKind.REF and ty.inner is not None:
            ty = ty.inner
        return ty.kind in (TyKind.STR, TyKind.STRING)

    def peel_indirection(self) -> Ty:
        """Strip pointers, references, arrays and slices."""
        ty = self
        while ty.kind in (TyKind.RAW_PTR, TyKind.REF, TyKind.ARRAY, TyKind.SLICE) and ty.inner:
            ty = ty.inner
        return ty


@dataclass(eq=False)
class Binding:
    """A local variable or parameter introduced by a pattern."""

    name: str
    hir_id: int
    span: Span
    mutable: bool = False
    ty: Ty | None = None


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class LitKind(Enum):
    INT = "int"
    FLOAT = "float"
    STR = "str"
    BYTE_STR = "byte_str"
    CHAR = "char"
    BOOL = "bool"


class UnOp(Enum):
    DEREF = "*"
    NOT = "!"
    NEG = "-"


class BinOp(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"
    AND = "&&"
    OR = "||"
    BIT_XOR = "^"
    BIT_AND = "&"
    BIT_OR = "|"
    SHL = "<<"
    SHR = ">>"
    EQ = "=="
    LT = "<"
    LE = "<="
    NE = "!="
    GE = ">="
    GT = ">"

    @property
    def is_comparison(self) -> bool:
        return self in _COMPARISONS


_COMPARISONS = frozenset({BinOp.EQ, BinOp.LT, BinOp.LE, BinOp.NE, BinOp.GE, BinOp.GT})


@dataclass(eq=False, kw_only=True)
class Expr:
    """Base of all expression nodes. Equality is identity."""

    hir_id: int
    span: Span
    ty: Ty | None = None


@dataclass(eq=False, kw_only=True)
class PathExpr(Expr):
    segments: tuple[str, ...]
    res: Res = UNRESOLVED

    @property
    def local_id(self) -> int | None:
        return self.res.hir_id if self.res.kind is ResKind.LOCAL else None


@dataclass(eq=False, kw_only=True)
class Lit(Expr):
    kind: LitKind
    value: Any
    suffix: str | None = None


@dataclass(eq=False, kw_only=True)
class Call(Expr):
    func: Expr
    args: list[Expr] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class MethodCall(Expr):
    receiver: Expr
    method: str
    args: list[Expr] = field(default_factory=list)
    def_id: DefId | None = None


@dataclass(eq=False, kw_only=True)
class Cast(Expr):
    expr: Expr
    target: Ty


@dataclass(eq=False, kw_only=True)
class AddrOf(Expr):
    expr: Expr
    mutable: bool = False


@dataclass(eq=False, kw_only=True)
class Unary(Expr):
    op: UnOp
    expr: Expr


@dataclass(eq=False, kw_only=True)
class Binary(Expr):
    op: BinOp
    lhs: Expr
    rhs: Expr


@dataclass(eq=False, kw_only=True)
class Assign(Expr):
    """``lhs = rhs``, or ``lhs op= rhs`` when ``op`` is set."""

    lhs: Expr
    rhs: Expr
    op: BinOp | None = None


@dataclass(eq=False, kw_only=True)
class BlockExpr(Expr):
    block: Block


@dataclass(eq=False, kw_only=True)
class If(Expr):
    cond: Expr
    then: Block
    orelse: Expr | None = None


@dataclass(eq=False, kw_only=True)
class Loop(Expr):
    """``loop``, ``while`` (``cond`` set) or ``for`` (``iterable`` set)."""

    body: Block
    cond: Expr | None = None
    iterable: Expr | None = None
    bindings: list[Binding] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class Arm:
    body: Expr
    bindings: list[Binding] = field(default_factory=list)
    guard: Expr | None = None


@dataclass(eq=False, kw_only=True)
class Match(Expr):
    scrutinee: Expr
    arms: list[Arm] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class Return(Expr):
    value: Expr | None = None


@dataclass(eq=False, kw_only=True)
class Closure(Expr):
    """A closure literal, or an ``async`` block when ``is_async`` and no params."""

    body: Expr
    params: list[Binding] = field(default_factory=list)
    is_async: bool = False


@dataclass(eq=False, kw_only=True)
class Field(Expr):
    expr: Expr
    name: str


@dataclass(eq=False, kw_only=True)
class Index(Expr):
    expr: Expr
    index: Expr


@dataclass(eq=False, kw_only=True)
class Tuple(Expr):
    """Tuple, array and struct literals: a plain list of element expressions."""

    elements: list[Expr] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class Try(Expr):
    expr: Expr


@dataclass(eq=False, kw_only=True)
class Await(Expr):
    expr: Expr


@dataclass(eq=False, kw_only=True)
class Opaque(Expr):
    """Anything the host could not or did not lower further."""

    children: list[Expr] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Statements and blocks
# ---------------------------------------------------------------------------


@dataclass(eq=False, kw_only=True)
class Local:
    """A ``let`` statement."""

    hir_id: int
    span: Span
    bindings: list[Binding] = field(default_factory=list)
    ty: Ty | None = None
    init: Expr | None = None
    orelse: Block | None = None

    @property
    def binding(self) -> Binding | None:
        """The sole binding of a simple ``let name = ...`` pattern."""
        return self.bindings[0] if len(self.bindings) == 1 else None


@dataclass(eq=False, kw_only=True)
class Block:
    hir_id: int
    span: Span
    stmts: list[Stmt] = field(default_factory=list)
    expr: Expr | None = None
    unsafe: bool = False


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass(eq=False, kw_only=True)
class Param:
    ty: Ty
    span: Span
    binding: Binding | None = None


@dataclass(eq=False, kw_only=True)
class FnSig:
    params: list[Param] = field(default_factory=list)
    output: Ty | None = None
    is_async: bool = False
    is_unsafe: bool = False
    abi: str = "Rust"

    @property
    def is_foreign_abi(self) -> bool:
        return self.abi != "Rust"


@dataclass(eq=False, kw_only=True)
class FnItem:
    """A named function or method definition with a body."""

    name: str
    def_id: DefId
    span: Span
    sig: FnSig
    body: Block


@dataclass(eq=False, kw_only=True)
class ForeignItem:
    """A function (``sig`` set) or static (``ty`` set) declared in an extern block."""

    name: str
    def_id: DefId
    span: Span
    sig: FnSig | None = None
    ty: Ty | None = None

    @property
    def is_fn(self) -> bool:
        return self.sig is not None


@dataclass(eq=False, kw_only=True)
class ForeignMod:
    span: Span
    abi: str = "C"
    items: list[ForeignItem] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class FieldDef:
    name: str
    ty: Ty
    span: Span


@dataclass(eq=False, kw_only=True)
class AdtItem:
    """A struct, enum or union definition with its ``#[repr(...)]`` hints."""

    name: str
    def_id: DefId
    span: Span
    kind: DefKind = DefKind.STRUCT
    repr: tuple[str, ...] = ()
    fields: list[FieldDef] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class StaticItem:
    name: str
    def_id: DefId
    span: Span
    ty: Ty
    value: Expr | None = None


@dataclass(eq=False, kw_only=True)
class ImplItem:
    span: Span
    self_ty: str
    items: list[Item] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class ModItem:
    name: str
    span: Span
    items: list[Item] = field(default_factory=list)


Item = FnItem | ForeignMod | AdtItem | StaticItem | ImplItem | ModItem
Stmt = Local | Expr | Item


# ---------------------------------------------------------------------------
# Unit and path resolution
# ---------------------------------------------------------------------------


class Namespace(Protocol):
    """Path resolution service of the dependency closure."""

    def resolve_path(self, segments: Sequence[str]) -> list[DefId]: ...


class PathTable:
    """In-memory namespace: several paths may share one DefId (re-exports)."""

    def __init__(self, krate: str = "deps"):
        self.krate = krate
        self._paths: dict[tuple[str, ...], list[DefId]] = defaultdict(list)
        self._kinds: dict[DefId, DefKind] = {}
        self._next_index = 0

    def new_def_id(self) -> DefId:
        self._next_index += 1
        return DefId(self.krate, self._next_index)

    def register(
        self,
        path: str | Sequence[str],
        def_id: DefId | None = None,
        kind: DefKind = DefKind.FN,
    ) -> DefId:
        """Register ``path``; pass an existing ``def_id`` to add a re-export."""
        segments = tuple(path.split("::")) if isinstance(path, str) else tuple(path)
        if def_id is None:
            def_id = self.new_def_id()
        if def_id not in self._paths[segments]:
            self._paths[segments].append(def_id)
        self._kinds.setdefault(def_id, kind)
        return def_id

    def resolve_path(self, segments: Sequence[str]) -> list[DefId]:
        return list(self._paths.get(tuple(segments), ()))

    def def_kind(self, def_id: DefId) -> DefKind | None:
        return self._kinds.get(def_id)


@dataclass(eq=False, kw_only=True)
class Unit:
    """One compiled unit: its items plus the resolution service for its closure."""

    name: str
    namespace: Namespace
    items: list[Item] = field(default_factory=list)
