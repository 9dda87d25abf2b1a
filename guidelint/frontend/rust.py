"""Lower Rust source into the semantic tree.

Best-effort and syntax driven: locals are resolved lexically, paths through
the file's ``use`` declarations, and types are taken from annotations plus
a handful of obvious constructors. Macro arguments are re-parsed as call
arguments so expressions inside ``println!`` or ``assert!`` are analysed
like any other. Nothing here type checks; unknown constructs lower to
``Opaque`` nodes carrying their sub-expressions.
"""

import itertools
import re
from pathlib import Path
from typing import Any

from guidelint.errors import FrontendError
from guidelint.frontend.names import (
    LOCAL_ROOTS,
    PRELUDE,
    ExternTable,
    ImportTable,
    canonical_path,
    path_segments,
)
from guidelint.frontend.parser import (
    COMMENT_TYPES,
    extern_abi,
    get_child_by_type,
    get_text,
    has_child,
    has_modifier,
    named_children,
    parse,
)
from guidelint.hir import (
    AddrOf,
    AdtItem,
    Arm,
    Assign,
    Await,
    Binary,
    BinOp,
    Binding,
    Block,
    BlockExpr,
    Call,
    Cast,
    Closure,
    DefId,
    DefKind,
    Expr,
    Field,
    FieldDef,
    FnItem,
    FnSig,
    ForeignItem,
    ForeignMod,
    If,
    ImplItem,
    Index,
    Item,
    Lit,
    LitKind,
    Local,
    Loop,
    Match,
    MethodCall,
    ModItem,
    Opaque,
    Param,
    PathExpr,
    PathTable,
    Res,
    Return,
    Span,
    StaticItem,
    Try,
    Tuple,
    Ty,
    TyKind,
    Unary,
    UnOp,
    Unit,
    UNRESOLVED,
)
from guidelint.rules.invalid_char_range import const_fold
from guidelint.utils.logging import logger

ADT_NODES = {"struct_item": DefKind.STRUCT, "enum_item": DefKind.ENUM, "union_item": DefKind.UNION}
ITEM_NODES = frozenset(
    {
        "function_item",
        "foreign_mod_item",
        "struct_item",
        "enum_item",
        "union_item",
        "static_item",
        "const_item",
        "impl_item",
        "trait_item",
        "mod_item",
        "use_declaration",
        "type_item",
        "macro_definition",
        "extern_crate_declaration",
        "attribute_item",
        "inner_attribute_item",
    }
)
# Named nodes that never hold expressions.
NON_EXPRESSION_NODES = frozenset(
    {
        "label",
        "lifetime",
        "type_arguments",
        "type_identifier",
        "primitive_type",
        "attribute_item",
        "mutable_specifier",
        "field_identifier",
        *COMMENT_TYPES,
    }
)

_INT_LITERAL = re.compile(r"^(?P<body>.+?)(?P<suffix>[iu](?:8|16|32|64|128|size))?$")
_FLOAT_LITERAL = re.compile(r"^(?P<body>.+?)(?P<suffix>f32|f64)?$")
_REPR = re.compile(r"repr\s*\(([^)]*)\)")

_BIN_OPS = {op.value: op for op in BinOp}
_UN_OPS = {"-": UnOp.NEG, "*": UnOp.DEREF, "!": UnOp.NOT}

# Trait methods whose receiver type rarely matters for classification.
TRAIT_METHODS: dict[str, tuple[str, ...]] = {
    "read_to_string": ("std", "io", "Read", "read_to_string"),
    "read_to_end": ("std", "io", "Read", "read_to_end"),
    "read_line": ("std", "io", "BufRead", "read_line"),
    "recv": ("std", "sync", "mpsc", "Receiver", "recv"),
    "recv_timeout": ("std", "sync", "mpsc", "Receiver", "recv_timeout"),
    "wait_timeout": ("std", "sync", "Condvar", "wait_timeout"),
}

# Associated functions returning (a result of) their own type.
CONSTRUCTORS = frozenset(
    {"new", "from", "default", "with_capacity", "open", "create", "connect", "bind"}
)
RETURN_TYPES: dict[tuple[str, ...], str] = {
    ("std", "io", "stdin"): "std::io::Stdin",
    ("std", "io", "stdout"): "std::io::Stdout",
    ("std", "thread", "spawn"): "std::thread::JoinHandle",
}

STRING_PATH = ("std", "string", "String")
MACRO_PREFIX = "fn __guidelint_macro() { __args("
MACRO_SUFFIX = "); }"

STR = Ty(TyKind.STR, "str")
STR_REF = Ty(TyKind.REF, inner=STR)
STRING = Ty(TyKind.STRING, "String")
U8 = Ty(TyKind.PRIMITIVE, "u8")


def _parse_int(text: str) -> tuple[int | None, str | None]:
    match = _INT_LITERAL.match(text.replace("_", ""))
    body, suffix = match.group("body"), match.group("suffix")
    lowered = body.lower()
    for prefix, base in (("0x", 16), ("0o", 8), ("0b", 2)):
        if lowered.startswith(prefix):
            try:
                return int(body[2:], base), suffix
            except ValueError:
                return None, suffix
    try:
        return int(body, 10), suffix
    except ValueError:
        return None, suffix


def _parse_float(text: str) -> tuple[float | None, str | None]:
    match = _FLOAT_LITERAL.match(text.replace("_", ""))
    try:
        return float(match.group("body")), match.group("suffix")
    except ValueError:
        return None, match.group("suffix")


def _adt_ty(path: tuple[str, ...]) -> Ty:
    if canonical_path(path) == STRING_PATH:
        return STRING
    return Ty(TyKind.ADT, "::".join(path))


def _peel_refs(ty: Ty | None) -> Ty | None:
    while ty is not None and ty.kind is TyKind.REF and ty.inner is not None:
        ty = ty.inner
    return ty


class RustLowering:
    """Lowers one parsed file; create one instance per file."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.externs = ExternTable()
        self.locals = PathTable(Path(file_path).stem or "unit")
        self.imports = ImportTable()
        self._ids = itertools.count(1)
        self._scopes: list[dict[str, Binding]] = []
        self._self_types: list[str] = []
        # (row, column, prefix length) of re-parsed macro arguments, innermost last
        self._origins: list[tuple[int, int, int]] = []
        # Unit-local definitions: name -> (DefId, kind); item node key -> DefId
        self._defs: dict[str, tuple[DefId, DefKind]] = {}
        self._node_ids: dict[tuple[int, int, str], DefId] = {}
        self._consts: dict[str, int | None] = {}
        self._pending_consts: list[tuple[str, Any]] = []
        self._modules: set[str] = set()
        # Canonical external path of each callee, by hir id
        self._callee_paths: dict[int, tuple[str, ...]] = {}

    # -- entry ----------------------------------------------------------------

    def lower(self, root: Any) -> Unit:
        self._collect_definitions(root, ())
        self._scopes.append({})
        for name, value in self._pending_consts:
            self._consts[name] = const_fold(self._expr(value))
        items = self._lower_items(named_children(root))
        self._scopes.pop()
        return Unit(name=self.file_path, namespace=self.externs, items=items)

    # -- spans and ids --------------------------------------------------------

    def _point(self, row: int, column: int) -> tuple[int, int]:
        for origin_row, origin_column, prefix in reversed(self._origins):
            if row == 0:
                column = origin_column + column - prefix
            row = origin_row + row
        return row, column

    def _span(self, node: Any) -> Span:
        row, column = self._point(*node.start_point)
        end_row, end_column = self._point(*node.end_point)
        return Span(self.file_path, row + 1, column + 1, end_row + 1, end_column + 1)

    def _meta(self, node: Any) -> dict:
        return {"hir_id": next(self._ids), "span": self._span(node)}

    # -- definitions pre-pass -------------------------------------------------

    @staticmethod
    def _key(node: Any) -> tuple[int, int, str]:
        return (node.start_byte, node.end_byte, node.type)

    def _define(self, node: Any, name: str, kind: DefKind) -> DefId:
        def_id = self.locals.register((name,), kind=kind)
        self._node_ids[self._key(node)] = def_id
        self._defs.setdefault(name, (def_id, kind))
        return def_id

    def _def_id(self, node: Any, kind: DefKind) -> DefId:
        """Identifier assigned in the pre-pass; items it did not reach get one now."""
        found = self._node_ids.get(self._key(node))
        if found is not None:
            return found
        return self._define(node, get_text(node.child_by_field_name("name")), kind)

    def _collect_definitions(self, node: Any, impl_path: tuple[str, ...]) -> None:
        for child in named_children(node):
            kind = child.type
            name_node = child.child_by_field_name("name")
            name = get_text(name_node)
            if kind == "use_declaration":
                self.imports.collect(child)
            elif kind == "function_item":
                qualified = "::".join((*impl_path, name))
                self._define(child, qualified, DefKind.ASSOC_FN if impl_path else DefKind.FN)
            elif kind == "foreign_mod_item":
                body = child.child_by_field_name("body")
                body = body or get_child_by_type(child, "declaration_list")
                for decl in named_children(body) if body is not None else ():
                    decl_name = get_text(decl.child_by_field_name("name"))
                    if decl.type == "function_signature_item":
                        self._define(decl, decl_name, DefKind.FOREIGN_FN)
                    elif decl.type == "static_item":
                        self._define(decl, decl_name, DefKind.STATIC)
                continue
            elif kind in ADT_NODES:
                self._define(child, name, ADT_NODES[kind])
            elif kind == "static_item":
                self._define(child, name, DefKind.STATIC)
            elif kind == "const_item":
                self._define(child, name, DefKind.CONST)
                value = child.child_by_field_name("value")
                if value is not None:
                    self._pending_consts.append((name, value))
            elif kind == "mod_item":
                self._modules.add(name)
            elif kind in ("impl_item", "trait_item"):
                ty_node = child.child_by_field_name("type") if kind == "impl_item" else name_node
                owner = path_segments(ty_node)[-1:] if ty_node is not None else ()
                body = child.child_by_field_name("body")
                if body is not None:
                    self._collect_definitions(body, owner)
                continue
            # Items nested in bodies, modules and blocks.
            for nested in named_children(child):
                if nested.type in ("block", "declaration_list"):
                    self._collect_definitions(nested, ())

    # -- scopes ---------------------------------------------------------------

    def _lookup(self, name: str) -> Binding | None:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def _bind(self, name: str, node: Any, mutable: bool, ty: Ty | None) -> Binding:
        binding = Binding(name, next(self._ids), self._span(node), mutable, ty)
        self._scopes[-1][name] = binding
        return binding

    def _pattern_names(self, node: Any, mutable: bool = False) -> list[tuple[str, Any, bool]]:
        kind = node.type
        if kind == "identifier":
            name = get_text(node)
            if name == "_" or name[:1].isupper():
                return []
            return [(name, node, mutable)]
        if kind == "mut_pattern":
            return [n for c in named_children(node) for n in self._pattern_names(c, True)]
        if kind in ("tuple_struct_pattern", "struct_pattern"):
            type_node = node.child_by_field_name("type")
            return [
                n
                for c in named_children(node)
                if c != type_node
                for n in self._pattern_names(c, mutable)
            ]
        if kind == "field_pattern":
            inner = node.child_by_field_name("pattern")
            if inner is not None:
                return self._pattern_names(inner, mutable)
            name_node = node.child_by_field_name("name")
            is_mut = mutable or has_child(node, "mutable_specifier")
            return [(get_text(name_node), name_node, is_mut)] if name_node is not None else []
        if kind == "or_pattern":
            alternatives = named_children(node)
            return self._pattern_names(alternatives[0], mutable) if alternatives else []
        if kind in (
            "scoped_identifier",
            "type_identifier",
            "generic_type",
            "negative_literal",
            "range_pattern",
            "integer_literal",
            "string_literal",
            "char_literal",
            "boolean_literal",
            "float_literal",
        ):
            return []
        mutable = mutable or has_child(node, "mutable_specifier")
        return [n for c in named_children(node) for n in self._pattern_names(c, mutable)]

    def _declare_pattern(self, pattern: Any, ty: Ty | None, mutable: bool = False) -> list[Binding]:
        names = self._pattern_names(pattern, mutable)
        single = pattern.type in ("identifier", "mut_pattern") and len(names) == 1
        return [
            self._bind(name, node, is_mut, ty if single else None) for name, node, is_mut in names
        ]

    # -- types ----------------------------------------------------------------

    def _named_type(self, segments: tuple[str, ...], span: Span) -> Ty:
        if segments[0] == "Self" and self._self_types:
            segments = (self._self_types[-1], *segments[1:])
        expanded = self.imports.expand(segments)
        if expanded is None and segments[0] in PRELUDE:
            expanded = (*PRELUDE[segments[0]], *segments[1:])
        if expanded is None:
            expanded = segments
        is_local = len(expanded) == 1 or expanded[0] in LOCAL_ROOTS or expanded[0] in self._modules
        found = self._defs.get(expanded[-1]) if is_local else None
        if found is not None and found[1] in ADT_NODES.values():
            return Ty(TyKind.ADT, expanded[-1], def_id=found[0], span=span)
        ty = _adt_ty(expanded)
        return Ty(ty.kind, ty.name, span=span)

    def _type(self, node: Any | None) -> Ty | None:
        if node is None:
            return None
        kind = node.type
        span = self._span(node)
        if kind == "primitive_type":
            name = get_text(node)
            if name == "str":
                return Ty(TyKind.STR, name, span=span)
            return Ty(TyKind.PRIMITIVE, name, span=span)
        if kind in ("pointer_type", "reference_type"):
            inner = self._type(node.child_by_field_name("type"))
            ty_kind = TyKind.RAW_PTR if kind == "pointer_type" else TyKind.REF
            return Ty(ty_kind, inner=inner, mutable=has_child(node, "mutable_specifier"), span=span)
        if kind == "array_type":
            inner = self._type(node.child_by_field_name("element"))
            has_length = node.child_by_field_name("length") is not None
            return Ty(TyKind.ARRAY if has_length else TyKind.SLICE, inner=inner, span=span)
        if kind in ("type_identifier", "scoped_type_identifier", "generic_type"):
            return self._named_type(path_segments(node), span)
        return Ty(TyKind.OTHER, get_text(node), span=span)

    # -- paths ----------------------------------------------------------------

    def _local_def(self, name: str) -> Res | None:
        found = self._defs.get(name)
        if found is None:
            return None
        def_id, kind = found
        if kind is DefKind.CONST:
            return Res.definition(def_id, kind, self._consts.get(name))
        return Res.definition(def_id, kind)

    def _resolve(
        self, segments: tuple[str, ...], callee: bool
    ) -> tuple[Res, tuple[str, ...] | None]:
        """Resolution of a path plus its external canonical path, when external."""
        if len(segments) == 1:
            local = self._local_def(segments[0])
            if local is not None:
                return local, None
        head = segments[0]
        if head == "Self" and self._self_types:
            segments = (self._self_types[-1], *segments[1:])
            head = segments[0]
        if head in LOCAL_ROOTS or head in self._modules:
            return self._local_def(segments[-1]) or UNRESOLVED, None
        if len(segments) > 1 and head in self._defs:
            return self._local_def("::".join(segments[-2:])) or UNRESOLVED, None

        expanded = self.imports.expand(segments)
        if expanded is None and head in PRELUDE:
            expanded = (*PRELUDE[head], *segments[1:])
        if expanded is None and len(segments) == 1:
            glob = self.imports.single_glob()
            if glob is None or glob[0] in LOCAL_ROOTS:
                return UNRESOLVED, None
            expanded = (*glob, *segments)
        if expanded is None:
            expanded = segments
        if expanded[0] in LOCAL_ROOTS:
            return self._local_def(expanded[-1]) or UNRESOLVED, None
        if not callee:
            return UNRESOLVED, expanded

        def_id = self.externs.intern(expanded)
        return Res.definition(def_id, self.externs.def_kind(def_id)), canonical_path(expanded)

    def _path(self, node: Any, callee: bool = False) -> PathExpr:
        segments = path_segments(node)
        binding = self._lookup(segments[0]) if len(segments) == 1 else None
        if binding is not None:
            return PathExpr(
                **self._meta(node), segments=segments, res=Res.local(binding.hir_id), ty=binding.ty
            )
        res, external = self._resolve(segments, callee)
        expr = PathExpr(**self._meta(node), segments=segments, res=res)
        if external is not None:
            self._callee_paths[expr.hir_id] = external
        return expr

    def _method_def_id(self, receiver: Expr, method: str) -> DefId | None:
        ty = _peel_refs(receiver.ty)
        if ty is not None and ty.kind is TyKind.ADT and ty.def_id is not None:
            found = self._defs.get(f"{ty.name}::{method}")
            return found[0] if found else None
        paths = []
        if ty is not None and ty.kind is TyKind.ADT:
            paths.append((*ty.name.split("::"), method))
        elif ty is not None and ty.kind is TyKind.STRING:
            paths.append((*STRING_PATH, method))
        if method in TRAIT_METHODS:
            paths.append(TRAIT_METHODS[method])
        return self.externs.intern_all(paths) if paths else None

    # -- items ----------------------------------------------------------------

    def _lower_items(self, nodes: list[Any]) -> list[Item]:
        items = []
        for node in nodes:
            item = self._item(node)
            if item is not None:
                items.append(item)
        return items

    def _item(self, node: Any) -> Item | None:
        kind = node.type
        if kind == "function_item":
            return self._fn(node)
        if kind == "foreign_mod_item":
            return self._foreign_mod(node)
        if kind in ADT_NODES:
            return self._adt(node)
        if kind == "static_item":
            value = node.child_by_field_name("value")
            return StaticItem(
                name=get_text(node.child_by_field_name("name")),
                def_id=self._def_id(node, DefKind.STATIC),
                span=self._span(node),
                ty=self._type(node.child_by_field_name("type")),
                value=self._expr(value) if value is not None else None,
            )
        if kind in ("impl_item", "trait_item"):
            ty_node = node.child_by_field_name("type" if kind == "impl_item" else "name")
            self_ty = path_segments(ty_node)[-1] if ty_node is not None else ""
            body = node.child_by_field_name("body")
            self._self_types.append(self_ty)
            try:
                items = self._lower_items(named_children(body)) if body is not None else []
            finally:
                self._self_types.pop()
            return ImplItem(span=self._span(node), self_ty=self_ty, items=items)
        if kind == "mod_item":
            body = node.child_by_field_name("body")
            return ModItem(
                name=get_text(node.child_by_field_name("name")),
                span=self._span(node),
                items=self._lower_items(named_children(body)) if body is not None else [],
            )
        return None

    def _params(self, node: Any) -> list[Param]:
        params = []
        params_node = node.child_by_field_name("parameters")
        for param in named_children(params_node) if params_node is not None else ():
            if param.type == "parameter":
                ty = self._type(param.child_by_field_name("type"))
                pattern = param.child_by_field_name("pattern")
                bindings = self._declare_pattern(
                    pattern, ty, mutable=has_child(param, "mutable_specifier")
                )
                binding = bindings[0] if len(bindings) == 1 else None
                params.append(Param(ty=ty, span=self._span(param), binding=binding))
            elif param.type == "self_parameter":
                self_ty = self._named_type(("Self",), self._span(param))
                ty = Ty(TyKind.REF, inner=self_ty) if has_child(param, "&") else self_ty
                binding = self._bind("self", param, has_child(param, "mutable_specifier"), ty)
                params.append(Param(ty=ty, span=self._span(param), binding=binding))
        return params

    def _sig(self, node: Any, abi: str | None = None) -> FnSig:
        return FnSig(
            params=self._params(node),
            output=self._type(node.child_by_field_name("return_type")),
            is_async=has_modifier(node, "async"),
            is_unsafe=has_modifier(node, "unsafe"),
            abi=abi or extern_abi(node) or "Rust",
        )

    def _fn(self, node: Any) -> FnItem:
        self._scopes.append({})
        try:
            sig = self._sig(node)
            body = self._block(node.child_by_field_name("body"))
        finally:
            self._scopes.pop()
        return FnItem(
            name=get_text(node.child_by_field_name("name")),
            def_id=self._def_id(node, DefKind.FN),
            span=self._span(node),
            sig=sig,
            body=body,
        )

    def _foreign_mod(self, node: Any) -> ForeignMod:
        abi = extern_abi(node) or "C"
        body = node.child_by_field_name("body") or get_child_by_type(node, "declaration_list")
        items = []
        for decl in named_children(body) if body is not None else ():
            key = self._key(decl)
            if key not in self._node_ids:
                continue
            name = get_text(decl.child_by_field_name("name"))
            if decl.type == "function_signature_item":
                self._scopes.append({})
                try:
                    sig = self._sig(decl, abi)
                finally:
                    self._scopes.pop()
                items.append(
                    ForeignItem(
                        name=name, def_id=self._node_ids[key], span=self._span(decl), sig=sig
                    )
                )
            else:
                items.append(
                    ForeignItem(
                        name=name,
                        def_id=self._node_ids[key],
                        span=self._span(decl),
                        ty=self._type(decl.child_by_field_name("type")),
                    )
                )
        return ForeignMod(span=self._span(node), abi=abi, items=items)

    def _reprs(self, node: Any) -> tuple[str, ...]:
        reprs: list[str] = []
        sibling = node.prev_named_sibling
        while sibling is not None and sibling.type in ("attribute_item", *COMMENT_TYPES):
            for match in _REPR.finditer(get_text(sibling)):
                reprs.extend(part.strip() for part in match.group(1).split(",") if part.strip())
            sibling = sibling.prev_named_sibling
        return tuple(reprs)

    def _fields(self, body: Any, prefix: str = "") -> list[FieldDef]:
        fields = []
        if body is None:
            return fields
        if body.type == "field_declaration_list":
            for decl in _children_of_type(body, "field_declaration"):
                name = get_text(decl.child_by_field_name("name"))
                ty = self._type(decl.child_by_field_name("type"))
                fields.append(FieldDef(name=f"{prefix}{name}", ty=ty, span=self._span(decl)))
        elif body.type == "ordered_field_declaration_list":
            types = [
                c
                for c in named_children(body)
                if c.type not in ("visibility_modifier", "attribute_item")
            ]
            for index, ty_node in enumerate(types):
                fields.append(
                    FieldDef(
                        name=f"{prefix}{index}", ty=self._type(ty_node), span=self._span(ty_node)
                    )
                )
        elif body.type == "enum_variant_list":
            for variant in _children_of_type(body, "enum_variant"):
                name = get_text(variant.child_by_field_name("name"))
                fields.extend(self._fields(variant.child_by_field_name("body"), f"{name}."))
        return fields

    def _adt(self, node: Any) -> AdtItem:
        return AdtItem(
            name=get_text(node.child_by_field_name("name")),
            def_id=self._def_id(node, ADT_NODES[node.type]),
            span=self._span(node),
            kind=ADT_NODES[node.type],
            repr=self._reprs(node),
            fields=self._fields(node.child_by_field_name("body")),
        )

    # -- blocks and statements ------------------------------------------------

    def _block(self, node: Any | None, unsafe: bool = False, bindings: list | None = None) -> Block:
        if node is None:
            return Block(hir_id=next(self._ids), span=Span(self.file_path, 0))
        meta = self._meta(node)
        self._scopes.append({})
        try:
            for binding in bindings or ():
                self._scopes[-1][binding.name] = binding
            stmts, tail = self._statements(node)
        finally:
            self._scopes.pop()
        return Block(**meta, stmts=stmts, expr=tail, unsafe=unsafe)

    def _statements(self, node: Any) -> tuple[list, Expr | None]:
        stmts: list = []
        tail = None
        children = [c for c in named_children(node) if c.type != "label"]
        for index, child in enumerate(children):
            last = index == len(children) - 1
            kind = child.type
            if kind == "let_declaration":
                stmts.append(self._local(child))
            elif kind == "expression_statement":
                inner = named_children(child)
                if not inner:
                    continue
                expr = self._expr(inner[0])
                if last and child.children[-1].type != ";":
                    tail = expr
                else:
                    stmts.append(expr)
            elif kind in ITEM_NODES:
                item = self._item(child)
                if item is not None:
                    stmts.append(item)
            elif kind == "empty_statement":
                continue
            else:
                expr = self._expr(child)
                if last:
                    tail = expr
                else:
                    stmts.append(expr)
        return stmts, tail

    def _local(self, node: Any) -> Local:
        meta = self._meta(node)
        value = node.child_by_field_name("value")
        init = self._expr(value) if value is not None else None
        ty = self._type(node.child_by_field_name("type"))
        alternative = node.child_by_field_name("alternative")
        orelse = self._block(alternative) if alternative is not None else None
        bindings = self._declare_pattern(
            node.child_by_field_name("pattern"),
            ty or (init.ty if init is not None else None),
            mutable=has_child(node, "mutable_specifier"),
        )
        return Local(**meta, bindings=bindings, ty=ty, init=init, orelse=orelse)

    # -- expressions ----------------------------------------------------------

    def _expr(self, node: Any) -> Expr:
        handler = getattr(self, f"_expr_{node.type}", None)
        if handler is not None:
            return handler(node)
        return self._opaque(node)

    def _opaque(self, node: Any, ty: Ty | None = None) -> Opaque:
        children = [
            self._expr(c)
            for c in named_children(node)
            if c.type not in NON_EXPRESSION_NODES and not c.type.endswith("_type")
        ]
        return Opaque(**self._meta(node), children=children, ty=ty)

    def _expr_parenthesized_expression(self, node: Any) -> Expr:
        inner = named_children(node)
        return self._expr(inner[0]) if inner else self._opaque(node)

    def _expr_identifier(self, node: Any) -> Expr:
        return self._path(node)

    _expr_self = _expr_identifier
    _expr_scoped_identifier = _expr_identifier

    def _expr_generic_function(self, node: Any) -> Expr:
        return self._expr(node.child_by_field_name("function"))

    def _expr_integer_literal(self, node: Any) -> Expr:
        value, suffix = _parse_int(get_text(node))
        ty = Ty(TyKind.PRIMITIVE, suffix) if suffix else None
        return Lit(**self._meta(node), kind=LitKind.INT, value=value, suffix=suffix, ty=ty)

    def _expr_float_literal(self, node: Any) -> Expr:
        value, suffix = _parse_float(get_text(node))
        ty = Ty(TyKind.PRIMITIVE, suffix) if suffix else None
        return Lit(**self._meta(node), kind=LitKind.FLOAT, value=value, suffix=suffix, ty=ty)

    def _expr_string_literal(self, node: Any) -> Expr:
        text = get_text(node)
        if text.startswith(("b", "c")):
            ty = Ty(TyKind.REF, inner=Ty(TyKind.ARRAY, inner=U8))
            return Lit(**self._meta(node), kind=LitKind.BYTE_STR, value=text, ty=ty)
        return Lit(**self._meta(node), kind=LitKind.STR, value=text.strip('"'), ty=STR_REF)

    _expr_raw_string_literal = _expr_string_literal

    def _expr_char_literal(self, node: Any) -> Expr:
        return Lit(**self._meta(node), kind=LitKind.CHAR, value=get_text(node).strip("'"))

    def _expr_boolean_literal(self, node: Any) -> Expr:
        return Lit(**self._meta(node), kind=LitKind.BOOL, value=get_text(node) == "true")

    def _expr_call_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        function = node.child_by_field_name("function")
        if function.type == "generic_function":
            inner = function.child_by_field_name("function")
            if inner is not None and inner.type == "field_expression":
                function = inner
        args_node = node.child_by_field_name("arguments")

        if function.type == "field_expression":
            receiver = self._expr(function.child_by_field_name("value"))
            method = get_text(function.child_by_field_name("field"))
            args = self._args(args_node)
            return MethodCall(
                **meta,
                receiver=receiver,
                method=method,
                args=args,
                def_id=self._method_def_id(receiver, method),
                ty=self._method_type(receiver, method),
            )

        if function.type in ("identifier", "scoped_identifier", "generic_function", "self"):
            func = self._path(function, callee=True)
        else:
            func = self._expr(function)
        args = self._args(args_node)
        return Call(**meta, func=func, args=args, ty=self._call_type(func))

    def _args(self, node: Any | None) -> list[Expr]:
        if node is None:
            return []
        return [self._expr(c) for c in named_children(node) if c.type != "attribute_item"]

    def _call_type(self, func: Expr) -> Ty | None:
        if not isinstance(func, PathExpr):
            return None
        path = self._callee_paths.get(func.hir_id)
        if path is None and func.res.def_id is not None:
            path = canonical_path(func.segments)
        if not path:
            return None
        if path in RETURN_TYPES:
            return _adt_ty(tuple(RETURN_TYPES[path].split("::")))
        if len(path) >= 2 and path[-2][:1].isupper() and path[-1] in CONSTRUCTORS:
            if func.res.def_kind is DefKind.ASSOC_FN:
                return self._named_type((path[-2],), func.span)
            return _adt_ty(tuple(path[:-1]))
        return None

    @staticmethod
    def _method_type(receiver: Expr, method: str) -> Ty | None:
        ty = receiver.ty
        if method in ("to_string", "to_uppercase", "to_lowercase", "repeat"):
            return STRING
        if method == "to_owned" and ty is not None and ty.is_native_string:
            return STRING
        if method in ("as_str", "trim", "trim_end", "trim_start"):
            return STR_REF
        if method in ("unwrap", "expect", "clone", "unwrap_or_default", "to_owned"):
            return ty
        if method in ("as_ptr", "as_mut_ptr"):
            return Ty(TyKind.RAW_PTR, inner=U8, mutable=method == "as_mut_ptr")
        if method == "as_bytes":
            return Ty(TyKind.REF, inner=Ty(TyKind.SLICE, inner=U8))
        return None

    def _expr_field_expression(self, node: Any) -> Expr:
        return Field(
            **self._meta(node),
            expr=self._expr(node.child_by_field_name("value")),
            name=get_text(node.child_by_field_name("field")),
        )

    def _expr_unary_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        op = _UN_OPS.get(node.children[0].type, UnOp.NOT)
        operand = self._expr(named_children(node)[0])
        ty = None
        pointee = operand.ty is not None and operand.ty.kind in (TyKind.RAW_PTR, TyKind.REF)
        if op is UnOp.DEREF and pointee:
            ty = operand.ty.inner
        elif op is UnOp.NEG:
            ty = operand.ty
        return Unary(**meta, op=op, expr=operand, ty=ty)

    def _expr_reference_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        operand = self._expr(node.child_by_field_name("value"))
        mutable = has_child(node, "mutable_specifier")
        raw = any(get_text(c) == "raw" for c in node.children if not c.is_named)
        ty_kind = TyKind.RAW_PTR if raw else TyKind.REF
        return AddrOf(
            **meta,
            expr=operand,
            mutable=mutable,
            ty=Ty(ty_kind, inner=operand.ty, mutable=mutable),
        )

    def _expr_type_cast_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        operand = self._expr(node.child_by_field_name("value"))
        target = self._type(node.child_by_field_name("type"))
        return Cast(**meta, expr=operand, target=target, ty=target)

    def _expr_binary_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        lhs = self._expr(node.child_by_field_name("left"))
        op = _BIN_OPS.get(get_text(node.child_by_field_name("operator")), BinOp.ADD)
        rhs = self._expr(node.child_by_field_name("right"))
        ty = None if op.is_comparison or op in (BinOp.AND, BinOp.OR) else lhs.ty
        return Binary(**meta, op=op, lhs=lhs, rhs=rhs, ty=ty)

    def _expr_assignment_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        lhs = self._expr(node.child_by_field_name("left"))
        rhs = self._expr(node.child_by_field_name("right"))
        return Assign(**meta, lhs=lhs, rhs=rhs)

    def _expr_compound_assignment_expr(self, node: Any) -> Expr:
        meta = self._meta(node)
        lhs = self._expr(node.child_by_field_name("left"))
        operator = get_text(node.child_by_field_name("operator")).rstrip("=")
        rhs = self._expr(node.child_by_field_name("right"))
        return Assign(**meta, lhs=lhs, rhs=rhs, op=_BIN_OPS.get(operator, BinOp.ADD))

    def _block_expr(self, node: Any, block_node: Any, unsafe: bool = False) -> BlockExpr:
        meta = self._meta(node)
        block = self._block(block_node, unsafe=unsafe)
        ty = block.expr.ty if block.expr is not None else None
        return BlockExpr(**meta, block=block, ty=ty)

    def _expr_block(self, node: Any) -> Expr:
        return self._block_expr(node, node)

    def _expr_unsafe_block(self, node: Any) -> Expr:
        return self._block_expr(node, get_child_by_type(node, "block"), unsafe=True)

    def _expr_const_block(self, node: Any) -> Expr:
        return self._block_expr(node, get_child_by_type(node, "block"))

    def _expr_async_block(self, node: Any) -> Expr:
        meta = self._meta(node)
        body = self._block_expr(node, get_child_by_type(node, "block"))
        return Closure(**meta, body=body, is_async=True)

    def _condition(self, node: Any) -> tuple[Expr, list[Binding]]:
        """Lower an ``if``/``while`` condition; ``let`` patterns bind in the body."""
        if node.type == "let_condition":
            value = self._expr(node.child_by_field_name("value"))
            self._scopes.append({})
            try:
                bindings = self._declare_pattern(node.child_by_field_name("pattern"), None)
            finally:
                self._scopes.pop()
            return value, bindings
        if node.type == "let_chain":
            parts = [self._condition(c) for c in named_children(node)]
            cond, bindings = parts[0]
            for part, part_bindings in parts[1:]:
                cond = Binary(
                    hir_id=next(self._ids), span=self._span(node), op=BinOp.AND, lhs=cond, rhs=part
                )
                bindings = bindings + part_bindings
            return cond, bindings
        return self._expr(node), []

    def _expr_if_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        cond, bindings = self._condition(node.child_by_field_name("condition"))
        then = self._block(node.child_by_field_name("consequence"), bindings=bindings)
        orelse = None
        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            inner = named_children(alternative)
            if inner:
                orelse = self._expr(inner[0])
        return If(**meta, cond=cond, then=then, orelse=orelse)

    def _expr_while_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        cond, bindings = self._condition(node.child_by_field_name("condition"))
        body = self._block(node.child_by_field_name("body"), bindings=bindings)
        return Loop(**meta, body=body, cond=cond)

    def _expr_loop_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        return Loop(**meta, body=self._block(node.child_by_field_name("body")))

    def _expr_for_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        iterable = self._expr(node.child_by_field_name("value"))
        self._scopes.append({})
        try:
            bindings = self._declare_pattern(node.child_by_field_name("pattern"), None)
            body = self._block(node.child_by_field_name("body"))
        finally:
            self._scopes.pop()
        return Loop(**meta, body=body, iterable=iterable, bindings=bindings)

    def _expr_match_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        scrutinee = self._expr(node.child_by_field_name("value"))
        arms = []
        body = node.child_by_field_name("body")
        for arm in named_children(body) if body is not None else ():
            if arm.type not in ("match_arm", "last_match_arm"):
                continue
            pattern = arm.child_by_field_name("pattern")
            self._scopes.append({})
            try:
                if pattern is not None:
                    inner = pattern.child_by_field_name("condition")
                    patterns = [c for c in named_children(pattern) if c != inner]
                else:
                    inner, patterns = None, []
                bindings = [b for p in patterns for b in self._declare_pattern(p, None)]
                guard = self._condition(inner)[0] if inner is not None else None
                value = arm.child_by_field_name("value")
                arm_body = self._expr(value) if value is not None else self._opaque(arm)
            finally:
                self._scopes.pop()
            arms.append(Arm(body=arm_body, bindings=bindings, guard=guard))
        return Match(**meta, scrutinee=scrutinee, arms=arms, ty=None)

    def _expr_return_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        inner = named_children(node)
        return Return(**meta, value=self._expr(inner[0]) if inner else None)

    def _expr_closure_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        self._scopes.append({})
        try:
            params: list[Binding] = []
            params_node = node.child_by_field_name("parameters")
            for param in named_children(params_node) if params_node is not None else ():
                if param.type == "parameter":
                    ty = self._type(param.child_by_field_name("type"))
                    params.extend(self._declare_pattern(param.child_by_field_name("pattern"), ty))
                else:
                    params.extend(self._declare_pattern(param, None))
            body = self._expr(node.child_by_field_name("body"))
        finally:
            self._scopes.pop()
        is_async = any(c.type == "async" for c in node.children)
        return Closure(**meta, body=body, params=params, is_async=is_async)

    def _expr_try_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        operand = self._expr(named_children(node)[0])
        return Try(**meta, expr=operand, ty=operand.ty)

    def _expr_await_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        return Await(**meta, expr=self._expr(named_children(node)[0]))

    def _expr_index_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        target, index = named_children(node)[:2]
        return Index(**meta, expr=self._expr(target), index=self._expr(index))

    def _expr_tuple_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        elements = [self._expr(c) for c in named_children(node) if c.type != "attribute_item"]
        return Tuple(**meta, elements=elements)

    _expr_array_expression = _expr_tuple_expression

    def _expr_struct_expression(self, node: Any) -> Expr:
        meta = self._meta(node)
        elements = []
        body = node.child_by_field_name("body")
        for init in named_children(body) if body is not None else ():
            if init.type == "shorthand_field_initializer":
                elements.append(self._path(named_children(init)[0]))
            elif init.type == "field_initializer":
                elements.append(self._expr(init.child_by_field_name("value")))
            elif init.type == "base_field_initializer":
                elements.extend(self._expr(c) for c in named_children(init))
        return Tuple(**meta, elements=elements)

    # -- macros ---------------------------------------------------------------

    def _expr_macro_invocation(self, node: Any) -> Expr:
        name_node = node.child_by_field_name("macro") or named_children(node)[0]
        name = path_segments(name_node)[-1]
        token_tree = get_child_by_type(node, "token_tree")
        args = self._macro_args(token_tree) if token_tree is not None else None
        if args is None:
            return Opaque(**self._meta(node))

        if name in ("addr_of", "addr_of_mut") and len(args) == 1:
            mutable = name == "addr_of_mut"
            return AddrOf(
                **self._meta(node),
                expr=args[0],
                mutable=mutable,
                ty=Ty(TyKind.RAW_PTR, inner=args[0].ty, mutable=mutable),
            )
        ty = STRING if name == "format" else None
        return Opaque(**self._meta(node), children=args, ty=ty)

    def _macro_args(self, token_tree: Any) -> list[Expr] | None:
        inner = get_text(token_tree)[1:-1]
        for opening, closing in (("", ""), ("[", "]")):
            source = f"{MACRO_PREFIX}{opening}{inner}{closing}{MACRO_SUFFIX}"
            tree = parse(source.encode("utf-8"))
            if tree.root_node.has_error:
                continue
            call = _find_first(tree.root_node, "call_expression")
            if call is None:
                continue
            row, column = token_tree.start_point
            self._origins.append((row, column + 1, len(MACRO_PREFIX) + len(opening)))
            try:
                return self._args(call.child_by_field_name("arguments"))
            finally:
                self._origins.pop()
        return None


def _children_of_type(node: Any, node_type: str) -> list[Any]:
    return [child for child in named_children(node) if child.type == node_type]


def _find_first(node: Any, node_type: str) -> Any | None:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == node_type:
            return current
        stack.extend(reversed(current.children))
    return None


def lower_source(source: str | bytes, file_path: str = "<memory>") -> Unit:
    """Parse and lower Rust source text.

    Args:
        source: Rust source code
        file_path: Path recorded in every span

    Returns:
        The lowered Unit with a namespace of every external path it calls

    Raises:
        FrontendError: if the tree-sitter Rust grammar is unavailable
    """
    if isinstance(source, str):
        source = source.encode("utf-8")
    tree = parse(source)
    if tree.root_node.has_error:
        logger.warning("Syntax errors in {path}; lowering what parsed", path=file_path)
    unit = RustLowering(file_path).lower(tree.root_node)
    logger.debug("Lowered {path}: {count} top-level items", path=file_path, count=len(unit.items))
    return unit


def lower_file(path: str | Path) -> Unit:
    """Read and lower one ``.rs`` file."""
    path = Path(path)
    try:
        source = path.read_bytes()
    except OSError as e:
        raise FrontendError(f"Cannot read {path}: {e}", {"path": str(path)}) from e
    return lower_source(source, str(path))
