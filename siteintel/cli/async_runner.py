"""Run async service calls from synchronous click commands."""

import asyncio
import logging
from typing import Any, Coroutine

import click

from siteintel.cli.colors import print_error
from siteintel.core.errors import SiteIntelError

logger = logging.getLogger(__name__)


def run_async_command(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run ``coro`` to completion on a fresh event loop.

    A SiteIntelError ends the command: its message is printed and the
    process exits with status 1. Anything else propagates to click.
    """
    try:
        return asyncio.run(coro)
    except SiteIntelError as e:
        logger.debug("Command failed with %s: %s", e.error_code, e.message)
        print_error(e.message)
        raise click.exceptions.Exit(1) from e
