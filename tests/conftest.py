"""Pytest configuration and fixtures.

``HirBuilder`` assembles small semantic trees by hand so rule tests do not
depend on the tree-sitter front end.
"""

import itertools

import pytest

from guidelint.config import GuidelinesConfig
from guidelint.context import LintContext
from guidelint.hir import (
    AddrOf,
    AdtItem,
    Assign,
    Binary,
    Binding,
    Block,
    BlockExpr,
    Call,
    Cast,
    Closure,
    DefKind,
    FieldDef,
    FnItem,
    FnSig,
    ForeignItem,
    ForeignMod,
    If,
    Lit,
    LitKind,
    Local,
    MethodCall,
    Param,
    PathExpr,
    PathTable,
    Res,
    Return,
    Span,
    Ty,
    TyKind,
    Unary,
    Unit,
    UnOp,
)

U8 = Ty(TyKind.PRIMITIVE, "u8")
I32 = Ty(TyKind.PRIMITIVE, "i32")
USIZE = Ty(TyKind.PRIMITIVE, "usize")
MUT_PTR = Ty(TyKind.RAW_PTR, inner=U8, mutable=True)
CONST_PTR = Ty(TyKind.RAW_PTR, inner=U8)
STRING = Ty(TyKind.STRING, "String")


class HirBuilder:
    """Factory for semantic tree nodes with fresh ids and one line per node."""

    def __init__(self, file: str = "test.rs"):
        self.file = file
        self.deps = PathTable("deps")
        self.local = PathTable("local")
        self._ids = itertools.count(1)
        self._lines = itertools.count(1)
        self._dep_ids = {}

    def span(self) -> Span:
        return Span(self.file, next(self._lines), 1)

    def _meta(self) -> dict:
        return {"hir_id": next(self._ids), "span": self.span()}

    # -- names ----------------------------------------------------------------

    def binding(self, name: str, ty: Ty | None = None, mutable: bool = False) -> Binding:
        return Binding(name, next(self._ids), self.span(), mutable, ty)

    def path(self, binding: Binding) -> PathExpr:
        return PathExpr(
            **self._meta(), segments=(binding.name,), res=Res.local(binding.hir_id), ty=binding.ty
        )

    def dep(self, path: str, kind: DefKind = DefKind.FN):
        """DefId of a dependency function, registered on first use."""
        if path not in self._dep_ids:
            self._dep_ids[path] = self.deps.register(path, kind=kind)
        return self._dep_ids[path]

    def fn_path(self, path: str) -> PathExpr:
        kind = DefKind.FOREIGN_FN if path.startswith("libc::") else DefKind.FN
        def_id = self.dep(path, kind)
        return PathExpr(
            **self._meta(), segments=tuple(path.split("::")), res=Res.definition(def_id, kind)
        )

    def item_path(self, item) -> PathExpr:
        kind = DefKind.FOREIGN_FN if isinstance(item, ForeignItem) else DefKind.FN
        return PathExpr(
            **self._meta(), segments=(item.name,), res=Res.definition(item.def_id, kind)
        )

    # -- expressions ----------------------------------------------------------

    def call(self, func, *args, ty: Ty | None = None) -> Call:
        return Call(**self._meta(), func=func, args=list(args), ty=ty)

    def call_path(self, path: str, *args, ty: Ty | None = None) -> Call:
        return self.call(self.fn_path(path), *args, ty=ty)

    def method(self, receiver, name: str, *args, def_id=None, ty: Ty | None = None) -> MethodCall:
        return MethodCall(
            **self._meta(), receiver=receiver, method=name, args=list(args), def_id=def_id, ty=ty
        )

    def int(self, value: int, suffix: str | None = None) -> Lit:
        return Lit(**self._meta(), kind=LitKind.INT, value=value, suffix=suffix)

    def float(self, value: float, suffix: str | None = None) -> Lit:
        return Lit(**self._meta(), kind=LitKind.FLOAT, value=value, suffix=suffix)

    def str(self, value: str) -> Lit:
        return Lit(
            **self._meta(), kind=LitKind.STR, value=value, ty=Ty(TyKind.REF, inner=Ty(TyKind.STR))
        )

    def cast(self, expr, ty: Ty) -> Cast:
        return Cast(**self._meta(), expr=expr, target=ty, ty=ty)

    def addr_of(self, expr, mutable: bool = False) -> AddrOf:
        return AddrOf(**self._meta(), expr=expr, mutable=mutable)

    def deref(self, expr) -> Unary:
        return Unary(**self._meta(), op=UnOp.DEREF, expr=expr)

    def neg(self, expr) -> Unary:
        return Unary(**self._meta(), op=UnOp.NEG, expr=expr)

    def not_(self, expr) -> Unary:
        return Unary(**self._meta(), op=UnOp.NOT, expr=expr)

    def binary(self, op, lhs, rhs) -> Binary:
        return Binary(**self._meta(), op=op, lhs=lhs, rhs=rhs)

    def assign(self, lhs, rhs) -> Assign:
        return Assign(**self._meta(), lhs=lhs, rhs=rhs)

    def block(self, *stmts, expr=None, unsafe: bool = False, span: Span | None = None) -> Block:
        return Block(
            hir_id=next(self._ids),
            span=span or self.span(),
            stmts=list(stmts),
            expr=expr,
            unsafe=unsafe,
        )

    def block_expr(self, block: Block) -> BlockExpr:
        return BlockExpr(**self._meta(), block=block)

    def unsafe(self, *stmts, expr=None) -> BlockExpr:
        return self.block_expr(self.block(*stmts, expr=expr, unsafe=True))

    def if_(self, cond, then: Block, orelse=None) -> If:
        return If(**self._meta(), cond=cond, then=then, orelse=orelse)

    def ret(self, value=None) -> Return:
        return Return(**self._meta(), value=value)

    def closure(self, body, is_async: bool = False) -> Closure:
        return Closure(**self._meta(), body=body, is_async=is_async)

    # -- statements and items -------------------------------------------------

    def let(self, binding: Binding, init=None, ty: Ty | None = None) -> Local:
        return Local(**self._meta(), bindings=[binding], ty=ty, init=init)

    def param(self, binding: Binding) -> Param:
        return Param(ty=binding.ty, span=binding.span, binding=binding)

    def fn(
        self,
        name: str,
        *stmts,
        expr=None,
        params=(),
        is_async: bool = False,
        abi: str = "Rust",
        output: Ty | None = None,
    ) -> FnItem:
        sig = FnSig(
            params=[self.param(p) for p in params], output=output, is_async=is_async, abi=abi
        )
        return FnItem(
            name=name,
            def_id=self.local.register(name),
            span=self.span(),
            sig=sig,
            body=self.block(*stmts, expr=expr),
        )

    def foreign_fn(self, name: str, params=(), output: Ty | None = None) -> ForeignItem:
        sig = FnSig(
            params=[Param(ty=ty, span=self.span()) for ty in params], output=output, abi="C"
        )
        return ForeignItem(
            name=name,
            def_id=self.local.register(name, kind=DefKind.FOREIGN_FN),
            span=self.span(),
            sig=sig,
        )

    def foreign_mod(self, *items) -> ForeignMod:
        return ForeignMod(span=self.span(), items=list(items))

    def adt(self, name: str, repr=(), fields=(), kind: DefKind = DefKind.STRUCT) -> AdtItem:
        return AdtItem(
            name=name,
            def_id=self.local.register(name, kind=kind),
            span=self.span(),
            kind=kind,
            repr=tuple(repr),
            fields=[FieldDef(name=n, ty=t, span=self.span()) for n, t in fields],
        )

    def adt_ty(self, adt: AdtItem) -> Ty:
        return Ty(TyKind.ADT, adt.name, def_id=adt.def_id, span=self.span())

    def unit(self, *items) -> Unit:
        return Unit(name="test", namespace=self.deps, items=list(items))


@pytest.fixture
def b():
    """Fresh semantic tree builder."""
    return HirBuilder()


@pytest.fixture
def config():
    """Built-in default configuration."""
    return GuidelinesConfig()


@pytest.fixture
def make_context(config):
    """Build a LintContext for a unit without running the pass."""

    def _make(unit, cfg=None):
        return LintContext(unit, cfg or config)

    return _make


def rules_of(diagnostics) -> list[str]:
    return [d.rule for d in diagnostics]
