"""Source front end: Rust files to semantic trees via tree-sitter."""

from guidelint.frontend.rust import RustLowering, lower_file, lower_source

__all__ = ["RustLowering", "lower_file", "lower_source"]
