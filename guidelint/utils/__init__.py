"""guidelint utilities package."""

from .error_handler import handle_exceptions
from .exit_codes import ExitCodes
from .logging import logger

__all__ = [
    "ExitCodes",
    "handle_exceptions",
    "logger",
]
