"""Run the guideline lints over Rust sources.

Usage: guidelint check src/
"""

import sys
from pathlib import Path

import click

from guidelint.config import load_guidelines_config
from guidelint.engine import analyze_unit
from guidelint.errors import FrontendError
from guidelint.frontend import lower_file
from guidelint.report import format_table, summary_stats, to_json
from guidelint.ui import console, print_header, print_success, print_warning
from guidelint.utils.error_handler import handle_exceptions
from guidelint.utils.exit_codes import ExitCodes
from guidelint.utils.logging import logger

SKIPPED_DIRS = frozenset({"target", ".git", "node_modules"})


def collect_sources(paths: tuple[str, ...]) -> list[Path]:
    """``.rs`` files named directly or found under directories, sorted and de-duplicated."""
    found: set[Path] = set()
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            found.add(path)
            continue
        for candidate in path.rglob("*.rs"):
            relative = candidate.relative_to(path).parts[:-1]
            if any(part in SKIPPED_DIRS or part.startswith(".") for part in relative):
                continue
            found.add(candidate)
    return sorted(found)


@click.command("check")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Configuration file (default: guidelint.yml in the current directory)",
)
@click.option("--json", "as_json", is_flag=True, help="Print findings as JSON instead of a table")
@click.option(
    "--allow-io-blocking",
    is_flag=True,
    help="Do not report I/O functions called from async code",
)
@click.option("--max-rows", default=None, type=int, help="Maximum rows to display in table")
@handle_exceptions
def check(paths, config_path, as_json, allow_io_blocking, max_rows):
    """Lint Rust source files for memory, FFI and async hazards.

    Each file is analysed on its own: paths, types and extern declarations
    are resolved from what the file itself says.

    \b
    Examples:
      guidelint check src/                      # Every .rs file under src/
      guidelint check lib.rs --json             # Machine-readable output
      guidelint check src/ --config lints.yml   # Custom function lists

    \b
    Exit codes:
      0  no findings
      1  guideline violations detected
      3  a file could not be read or parsed
    """
    config = load_guidelines_config(".", config_path)
    if allow_io_blocking:
        config.allow_io_blocking_ops = True

    sources = collect_sources(paths)
    logger.info("Checking {count} source files", count=len(sources))

    diagnostics = []
    errors = []
    for source in sources:
        try:
            unit = lower_file(source)
        except FrontendError as e:
            logger.error("Skipping {path}: {err}", path=str(source), err=str(e))
            errors.append({"file": str(source), "error": str(e)})
            continue
        diagnostics.extend(analyze_unit(unit, config))

    if as_json:
        click.echo(to_json(diagnostics, errors))
    else:
        for error in errors:
            print_warning(f"{error['file']}: {error['error']}")
        if diagnostics:
            print_header("GUIDELINE FINDINGS")
            console.print(format_table(diagnostics, max_rows=max_rows))
            stats = summary_stats(diagnostics)
            console.print(
                f"{stats['total_findings']} findings in {stats['files_affected']} of "
                f"{len(sources)} files",
                highlight=False,
            )
        elif not errors:
            print_success(f"No findings in {len(sources)} files")

    exit_code = ExitCodes.SUCCESS
    if errors:
        exit_code = ExitCodes.TASK_INCOMPLETE
    elif diagnostics:
        exit_code = ExitCodes.FINDINGS
    if exit_code != ExitCodes.SUCCESS:
        logger.debug(
            "Exiting with {code}: {desc}", code=exit_code, desc=ExitCodes.get_description(exit_code)
        )
        sys.exit(exit_code)
