"""Tests for configured-name resolution.

Tests cover:
- Pattern classification (qualified, bare, malformed)
- Bare patterns against the libc namespace and local extern declarations
- Re-exports sharing one identifier
"""

from guidelint.hir import DefKind, PathTable
from guidelint.resolver import (
    BarePattern,
    ConfiguredFunctionSet,
    FunctionCategory,
    QualifiedPattern,
    build_function_sets,
    parse_pattern,
    parse_patterns,
    resolve_paths,
    resolve_pattern,
)


class TestParsePattern:
    """Classification of configured names."""

    def test_qualified_path(self):
        assert parse_pattern("std::alloc::alloc") == QualifiedPattern(("std", "alloc", "alloc"))

    def test_bare_name(self):
        assert parse_pattern("malloc") == BarePattern("malloc")

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_pattern("  free ") == BarePattern("free")

    def test_malformed_names_yield_none(self):
        assert parse_pattern("") is None
        assert parse_pattern("std::") is None
        assert parse_pattern("::free") is None
        assert parse_pattern("mem cpy") is None
        assert parse_pattern("9lives") is None

    def test_parse_patterns_skips_malformed_entries(self):
        patterns = parse_patterns(["memcpy", "bad name", "std::ptr::copy"], "mem_unsafe")
        assert patterns == (BarePattern("memcpy"), QualifiedPattern(("std", "ptr", "copy")))


class TestResolvePattern:
    """Resolution against a dependency namespace."""

    def test_qualified_pattern_keeps_every_match(self):
        ns = PathTable()
        first = ns.register("dep::open")
        second = ns.register("dep::open")
        assert resolve_pattern(parse_pattern("dep::open"), ns) == [first, second]

    def test_bare_pattern_looks_in_libc(self):
        ns = PathTable()
        malloc = ns.register("libc::malloc", kind=DefKind.FOREIGN_FN)
        ns.register("other::malloc")
        assert resolve_pattern(BarePattern("malloc"), ns) == [malloc]

    def test_zero_matches_is_not_an_error(self):
        assert resolve_pattern(parse_pattern("nowhere::to::be::found"), PathTable()) == []

    def test_reexports_share_one_identifier(self):
        ns = PathTable()
        def_id = ns.register("std::ptr::null")
        ns.register("core::ptr::null", def_id)
        assert resolve_paths(["std::ptr::null", "core::ptr::null"], ns) == {def_id}


class TestConfiguredFunctionSet:
    """Resolution state of one category."""

    def test_bare_pattern_matches_default_namespace_and_local_declaration(self, b):
        libc_memcpy = b.dep("libc::memcpy", DefKind.FOREIGN_FN)
        local_memcpy = b.foreign_fn("memcpy")
        unrelated = b.foreign_fn("strlen")

        fns = ConfiguredFunctionSet.from_names(FunctionCategory.MEM_UNSAFE, ["memcpy"])
        fns.resolve(b.deps)
        fns.add_foreign_items([local_memcpy, unrelated])

        assert libc_memcpy in fns
        assert local_memcpy.def_id in fns
        assert unrelated.def_id not in fns

    def test_qualified_pattern_ignores_local_declarations(self, b):
        local_alloc = b.foreign_fn("alloc")
        fns = ConfiguredFunctionSet.from_names(FunctionCategory.MEM_ALLOC, ["std::alloc::alloc"])
        fns.add_foreign_items([local_alloc])
        assert local_alloc.def_id not in fns

    def test_build_function_sets_covers_every_category(self, config):
        sets = build_function_sets(config)
        assert set(sets) == set(FunctionCategory)
        blocking = {str(p) for p in sets[FunctionCategory.BLOCKING].patterns}
        assert "std::thread::sleep" in blocking
        assert BarePattern("free") in sets[FunctionCategory.FREE].patterns
