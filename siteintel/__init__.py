"""siteintel package exports.

Keep package import lightweight by lazily importing heavy modules.
"""

from typing import TYPE_CHECKING, Any

__version__ = "0.4.0"

if TYPE_CHECKING:
    from .config import AppConfig
    from .services.executor import ProgressiveExecutor

__all__ = ["AppConfig", "ProgressiveExecutor", "create_repository"]


def __getattr__(name: str) -> Any:
    """Lazily resolve top-level exports."""
    if name == "AppConfig":
        from .config import AppConfig

        return AppConfig

    if name == "ProgressiveExecutor":
        from .services.executor import ProgressiveExecutor

        return ProgressiveExecutor

    if name == "create_repository":
        from .storage import create_repository

        return create_repository

    if name in {"core", "observability", "routing", "scrapers", "services", "storage", "config"}:
        import importlib

        return importlib.import_module(f".{name}", __name__)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
