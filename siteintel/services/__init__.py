"""Execution services."""

from siteintel.services.executor import (
    DataCounts,
    ExecutionResult,
    NextAction,
    ProgressiveExecutor,
    SessionStatusReport,
    generate_suggestions,
    resolve_urls,
)

__all__ = [
    "DataCounts",
    "ExecutionResult",
    "NextAction",
    "ProgressiveExecutor",
    "SessionStatusReport",
    "generate_suggestions",
    "resolve_urls",
]
