"""guidelint - guideline lints for Rust memory, FFI and async hazards."""

__version__ = "0.3.0"

from guidelint.config import GuidelinesConfig, load_guidelines_config
from guidelint.diagnostics import Diagnostic
from guidelint.engine import analyze_unit
from guidelint.lints import ALL_LINTS, LINTS_BY_NAME, Lint

__all__ = [
    "ALL_LINTS",
    "LINTS_BY_NAME",
    "Diagnostic",
    "GuidelinesConfig",
    "Lint",
    "__version__",
    "analyze_unit",
    "load_guidelines_config",
]
