"""One-shot analysis of a single unit."""

from guidelint.config import GuidelinesConfig
from guidelint.context import LintContext
from guidelint.diagnostics import Diagnostic
from guidelint.dispatcher import GuidelinesPass
from guidelint.hir import Unit
from guidelint.utils.logging import logger


def analyze_unit(unit: Unit, config: GuidelinesConfig | None = None) -> list[Diagnostic]:
    """Run every guideline lint over ``unit``.

    Args:
        unit: Lowered unit with its path-resolution namespace
        config: Lint configuration; built-in defaults when omitted

    Returns:
        Diagnostics in emission order. The unit is not modified and no
        state survives the call.
    """
    cx = LintContext(unit, config or GuidelinesConfig())
    GuidelinesPass(cx).run()
    logger.info(
        "Analyzed unit {unit}: {count} diagnostics",
        unit=unit.name,
        count=len(cx.sink),
    )
    return list(cx.sink)
