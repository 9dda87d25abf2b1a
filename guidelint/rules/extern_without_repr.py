"""Foreign-Layout Checker.

Data types crossing an FFI boundary need a fixed memory layout. For every
function declared in an extern block, every static declared there, and
every function defined with a non-Rust ABI, the parameter, return and
static types are peeled through pointers, references, arrays and slices.
A unit-local struct, enum or union reached that way (or through the fields
of one) without ``#[repr(C)]``, ``#[repr(transparent)]`` or, for enums, an
integer repr is flagged once per item and type.
"""

from collections.abc import Iterator

from guidelint.context import LintContext
from guidelint.hir import AdtItem, DefId, DefKind, FnItem, FnSig, ForeignMod, Item, Span, Ty
from guidelint.lints import EXTERN_WITHOUT_REPR

FIXED_LAYOUT_REPRS = frozenset({"C", "transparent"})
INTEGER_REPRS = frozenset(
    {"u8", "u16", "u32", "u64", "u128", "usize", "i8", "i16", "i32", "i64", "i128", "isize"}
)
MAX_FIELD_DEPTH = 16


def has_fixed_layout(adt: AdtItem) -> bool:
    reprs = set(adt.repr)
    if reprs & FIXED_LAYOUT_REPRS:
        return True
    return adt.kind is DefKind.ENUM and bool(reprs & INTEGER_REPRS)


def _sig_types(sig: FnSig) -> Iterator[Ty]:
    for param in sig.params:
        yield param.ty
    if sig.output is not None:
        yield sig.output


def _ffi_types(item: Item) -> Iterator[tuple[Span, Ty]]:
    """``(item span, type)`` for every type the item exposes across FFI."""
    if isinstance(item, ForeignMod):
        for foreign in item.items:
            if foreign.sig is not None:
                for ty in _sig_types(foreign.sig):
                    yield foreign.span, ty
            elif foreign.ty is not None:
                yield foreign.span, foreign.ty
    elif isinstance(item, FnItem) and item.sig.is_foreign_abi:
        for ty in _sig_types(item.sig):
            yield item.span, ty


def _offending_adts(cx: LintContext, ty: Ty, seen: set[DefId], depth: int = 0) -> Iterator[AdtItem]:
    ty = ty.peel_indirection()
    adt = cx.adts.get(ty.def_id) if ty.def_id is not None else None
    if adt is None or adt.def_id in seen or depth > MAX_FIELD_DEPTH:
        return
    seen.add(adt.def_id)
    if not has_fixed_layout(adt):
        yield adt
    for field in adt.fields:
        yield from _offending_adts(cx, field.ty, seen, depth + 1)


def check_item(cx: LintContext, item: Item) -> None:
    reported: set[tuple[Span, DefId]] = set()
    for span, ty in _ffi_types(item):
        for adt in _offending_adts(cx, ty, set()):
            if (span, adt.def_id) in reported:
                continue
            reported.add((span, adt.def_id))
            cx.emit(
                EXTERN_WITHOUT_REPR,
                ty.span or span,
                f"`{adt.name}` is used in FFI but has no fixed data layout",
                f"add `#[repr(C)]` to the definition of `{adt.name}`",
            )
