"""Centralized error handler for guidelint commands."""

from collections.abc import Callable
from functools import wraps
from typing import Any

import click

from guidelint.errors import GuidelintError
from guidelint.utils.logging import logger


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator that logs failures and turns them into ``ClickException``."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit):
            raise
        except GuidelintError as e:
            logger.error("Command '{cmd}' failed: {err}", cmd=func.__name__, err=str(e))
            raise click.ClickException(str(e)) from e
        except Exception as e:
            logger.opt(exception=True).error(
                "Command '{cmd}' failed: {err}",
                cmd=func.__name__,
                err=str(e),
            )
            raise click.ClickException(f"{type(e).__name__}: {e}") from e

    return wrapper
