"""guidelint CLI - main entry point and command registration."""
# ruff: noqa: E402 - commands imported after cli group definition

import click

from guidelint import __version__
from guidelint.utils.logging import set_level


@click.group()
@click.version_option(version=__version__, prog_name="guidelint")
@click.help_option("-h", "--help")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def cli(verbose):
    """guidelint - guideline lints for Rust memory, FFI and async hazards

    \b
    QUICK START:
      guidelint check src/      # Lint every .rs file under src/
      guidelint rules           # List the lints

    \b
    Logging: GUIDELINT_LOG_LEVEL=DEBUG guidelint check src/"""
    if verbose:
        set_level("DEBUG")


from guidelint.commands.check import check
from guidelint.commands.rules import rules_command

cli.add_command(check)
cli.add_command(rules_command)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
