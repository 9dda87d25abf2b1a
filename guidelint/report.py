"""Rendering of diagnostics for humans (rich table) and tools (JSON)."""

import json
from collections import Counter
from collections.abc import Sequence

from rich.markup import escape
from rich.table import Table

from guidelint.diagnostics import Diagnostic
from guidelint.lints import Lint

SEVERITY_STYLES = {
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
    "info": "dim",
}


def format_table(diagnostics: Sequence[Diagnostic], max_rows: int | None = None) -> Table:
    """Table of findings in emission order, optionally truncated."""
    table = Table(title="Guideline findings", show_lines=False)
    table.add_column("Location", style="path", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Rule", style="rule")
    table.add_column("Message")

    shown = diagnostics if max_rows is None else diagnostics[:max_rows]
    for diagnostic in shown:
        severity = diagnostic.lint.severity.value
        message = escape(diagnostic.message)
        if diagnostic.help:
            message = f"{message}\n[dim]help: {escape(diagnostic.help)}[/dim]"
        table.add_row(
            str(diagnostic.span),
            f"[{SEVERITY_STYLES[severity]}]{severity}[/{SEVERITY_STYLES[severity]}]",
            diagnostic.rule,
            message,
        )
    if max_rows is not None and len(diagnostics) > max_rows:
        table.caption = f"{len(diagnostics) - max_rows} more findings not shown"
    return table


def summary_stats(diagnostics: Sequence[Diagnostic]) -> dict:
    return {
        "total_findings": len(diagnostics),
        "files_affected": len({d.span.file for d in diagnostics}),
        "by_severity": dict(Counter(d.lint.severity.value for d in diagnostics)),
        "by_rule": dict(Counter(d.rule for d in diagnostics)),
    }


def to_json(diagnostics: Sequence[Diagnostic], errors: Sequence[dict] = ()) -> str:
    """JSON document with every finding plus per-file failures."""
    payload = {
        "findings": [d.to_dict() for d in diagnostics],
        "summary": summary_stats(diagnostics),
    }
    if errors:
        payload["errors"] = list(errors)
    return json.dumps(payload, indent=2)


def format_rules(lints: Sequence[Lint]) -> Table:
    table = Table(title="Guideline lints")
    table.add_column("Rule", style="rule", no_wrap=True)
    table.add_column("Group")
    table.add_column("Severity")
    table.add_column("CWE")
    table.add_column("Description")
    for lint in lints:
        table.add_row(
            lint.name,
            lint.group.value,
            lint.severity.value,
            lint.cwe_id or "-",
            lint.description,
        )
    return table
