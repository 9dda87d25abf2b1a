"""List the guideline lints."""

import json

import click

from guidelint.lints import ALL_LINTS, LintGroup
from guidelint.report import format_rules
from guidelint.ui import console
from guidelint.utils.error_handler import handle_exceptions


@click.command("rules")
@click.option(
    "--group",
    type=click.Choice([g.value for g in LintGroup]),
    help="Only show lints of this group",
)
@click.option("--json", "as_json", is_flag=True, help="Print the registry as JSON")
@handle_exceptions
def rules_command(group, as_json):
    """Show every lint with its group, severity and CWE."""
    lints = [lint for lint in ALL_LINTS if group is None or lint.group.value == group]
    if as_json:
        records = [
            {
                "rule": lint.name,
                "group": lint.group.value,
                "severity": lint.severity.value,
                "cwe": lint.cwe_id,
                "description": lint.description,
            }
            for lint in lints
        ]
        click.echo(json.dumps(records, indent=2))
        return
    console.print(format_rules(lints))
