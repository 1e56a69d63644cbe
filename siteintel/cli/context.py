"""Shared construction of configuration and services for CLI commands."""

import logging

import click

from siteintel.config import AppConfig
from siteintel.services.executor import ProgressiveExecutor
from siteintel.storage import SessionRepository, create_repository


def get_config(ctx: click.Context) -> AppConfig:
    """Return the AppConfig stored on the root context, loading it on first use."""
    root = ctx.find_root()
    if not isinstance(root.obj, AppConfig):
        root.obj = AppConfig.from_env()
    return root.obj


def get_repository(ctx: click.Context) -> SessionRepository:
    return create_repository(get_config(ctx).storage)


def get_executor(ctx: click.Context) -> ProgressiveExecutor:
    """Executor for read-only and advisory commands (no scraper layer)."""
    config = get_config(ctx)
    return ProgressiveExecutor(
        create_repository(config.storage),
        config=config.executor,
        pricing=config.pricing,
    )


def configure_logging(config: AppConfig):
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
