"""Name resolution tables of the source front end.

``ImportTable`` records ``use`` declarations of one file. ``ExternTable``
is the namespace handed to the analysis: every path the file calls into
outside its own crate is registered on demand, with ``core::``/``alloc::``
folded onto ``std::`` so re-exports share one identifier.
"""

from collections.abc import Sequence
from typing import Any

from guidelint.frontend.parser import get_text, named_children
from guidelint.hir import DefId, DefKind, PathTable

LOCAL_ROOTS = frozenset({"crate", "self", "super"})
STD_ALIASES = frozenset({"core", "alloc"})
FOREIGN_CRATES = frozenset({"libc"})

PRELUDE: dict[str, tuple[str, ...]] = {
    "String": ("std", "string", "String"),
    "Vec": ("std", "vec", "Vec"),
    "Box": ("std", "boxed", "Box"),
    "Option": ("std", "option", "Option"),
    "Result": ("std", "result", "Result"),
    "ToString": ("std", "string", "ToString"),
    "drop": ("std", "mem", "drop"),
}


def path_segments(node: Any) -> tuple[str, ...]:
    """Segments of an identifier, scoped_identifier or scoped_type_identifier."""
    if node is None:
        return ()
    if node.type in ("scoped_identifier", "scoped_type_identifier"):
        prefix = path_segments(node.child_by_field_name("path"))
        return (*prefix, get_text(node.child_by_field_name("name")))
    if node.type in ("generic_type", "generic_function"):
        inner = node.child_by_field_name("type") or node.child_by_field_name("function")
        return path_segments(inner)
    if node.type == "bracketed_type":
        # <T as Trait>::f resolves through the trait
        inner = named_children(node)
        if inner and inner[0].type == "qualified_type":
            alias = inner[0].child_by_field_name("alias")
            return path_segments(alias) if alias is not None else (get_text(inner[0]),)
        return (get_text(node),)
    return (get_text(node),)


class ImportTable:
    """``use`` declarations of one file: local name to full path, plus globs."""

    def __init__(self):
        self.aliases: dict[str, tuple[str, ...]] = {}
        self.globs: list[tuple[str, ...]] = []

    def collect(self, node: Any) -> None:
        argument = node.child_by_field_name("argument")
        if argument is not None:
            self._collect(argument, ())

    def _collect(self, node: Any, prefix: tuple[str, ...]) -> None:
        kind = node.type
        if kind == "use_as_clause":
            path = (*prefix, *path_segments(node.child_by_field_name("path")))
            self.aliases[get_text(node.child_by_field_name("alias"))] = path
        elif kind == "scoped_use_list":
            base = (*prefix, *path_segments(node.child_by_field_name("path")))
            use_list = node.child_by_field_name("list")
            if use_list is not None:
                self._collect(use_list, base)
        elif kind == "use_list":
            for child in named_children(node):
                self._collect(child, prefix)
        elif kind == "use_wildcard":
            inner = named_children(node)
            self.globs.append((*prefix, *path_segments(inner[0])) if inner else prefix)
        elif kind == "self":
            if prefix:
                self.aliases[prefix[-1]] = prefix
        else:
            path = (*prefix, *path_segments(node))
            self.aliases[path[-1]] = path

    def expand(self, segments: Sequence[str]) -> tuple[str, ...] | None:
        """Full path of ``segments`` when its first segment was imported."""
        head = self.aliases.get(segments[0])
        if head is None:
            return None
        return (*head, *segments[1:])

    def single_glob(self) -> tuple[str, ...] | None:
        return self.globs[0] if len(self.globs) == 1 else None


def canonical_path(segments: Sequence[str]) -> tuple[str, ...]:
    segments = tuple(segments)
    if segments and segments[0] in STD_ALIASES:
        return ("std", *segments[1:])
    return segments


class ExternTable(PathTable):
    """Dependency namespace populated from the paths a file refers to."""

    def __init__(self, krate: str = "extern"):
        super().__init__(krate)

    def intern(self, segments: Sequence[str]) -> DefId:
        """Identifier of ``segments``, registering it and its std aliases on first use."""
        return self.intern_all([segments])

    def intern_all(self, paths: Sequence[Sequence[str]]) -> DefId:
        """One identifier shared by every path in ``paths``."""
        canonical = [canonical_path(p) for p in paths]
        def_id = None
        for path in canonical:
            found = self.resolve_path(path)
            if found:
                def_id = found[0]
                break
        kind = DefKind.FOREIGN_FN if canonical[0][0] in FOREIGN_CRATES else DefKind.FN
        for path in canonical:
            def_id = self.register(path, def_id, kind)
            if path[0] == "std":
                for alias in STD_ALIASES:
                    self.register((alias, *path[1:]), def_id, kind)
        return def_id
