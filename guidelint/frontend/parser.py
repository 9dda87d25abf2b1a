"""Tree-sitter access for Rust sources.

Tree-sitter node type reference (tree-sitter-rust grammar):
- function_item / function_signature_item: definitions and extern declarations
- foreign_mod_item: extern blocks, items under declaration_list
- struct_item / enum_item / union_item: data types, attributes are preceding siblings
- let_declaration: pattern / type / value / alternative fields
- call_expression: function / arguments; methods have a field_expression callee
- macro_invocation: macro name plus an unparsed token_tree
"""

from functools import lru_cache
from typing import Any

from guidelint.errors import FrontendError

COMMENT_TYPES = frozenset({"line_comment", "block_comment"})


@lru_cache(maxsize=1)
def get_rust_parser() -> Any:
    """Load the tree-sitter Rust grammar."""
    try:
        from tree_sitter_language_pack import get_parser
    except ImportError as e:
        raise FrontendError(
            "tree-sitter-language-pack is not installed; "
            "install it with: pip install tree-sitter-language-pack",
            {"error": str(e)},
        ) from e

    try:
        return get_parser("rust")
    except Exception as e:
        raise FrontendError(
            f"Failed to load tree-sitter grammar for Rust: {e}\n"
            "Please try: pip install --force-reinstall tree-sitter-language-pack"
        ) from e


def parse(source: bytes) -> Any:
    """Parse Rust source and return the tree."""
    return get_rust_parser().parse(source)


def get_child_by_type(node: Any, node_type: str) -> Any | None:
    """Get first child of given type."""
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def get_text(node: Any) -> str:
    """Safely decode node text."""
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="ignore")


def named_children(node: Any) -> list[Any]:
    """Named children without comments."""
    return [child for child in node.named_children if child.type not in COMMENT_TYPES]


def has_child(node: Any, node_type: str) -> bool:
    return get_child_by_type(node, node_type) is not None


def has_modifier(node: Any, modifier: str) -> bool:
    """Check if a function item has a specific modifier (async, unsafe, const)."""
    modifiers = get_child_by_type(node, "function_modifiers")
    if modifiers is None:
        return False
    return any(child.type == modifier for child in modifiers.children)


def extern_abi(node: Any) -> str | None:
    """ABI string of an ``extern`` modifier on the node, ``None`` when absent."""
    extern = get_child_by_type(node, "extern_modifier")
    if extern is None:
        modifiers = get_child_by_type(node, "function_modifiers")
        if modifiers is not None:
            extern = get_child_by_type(modifiers, "extern_modifier")
    if extern is None:
        return None
    abi_node = get_child_by_type(extern, "string_literal")
    if abi_node is None:
        return "C"
    return get_text(abi_node).strip('"')
