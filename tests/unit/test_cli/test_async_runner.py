"""Tests for running async service calls from CLI commands."""

import click
import pytest

from siteintel.cli.async_runner import run_async_command
from siteintel.core.errors import SessionNotFoundError, StorageError


async def _value():
    return 42


async def _raise(error):
    raise error


class TestRunAsyncCommand:
    def test_returns_coroutine_result(self):
        assert run_async_command(_value()) == 42

    def test_library_error_exits_with_status_one(self, capsys):
        with pytest.raises(click.exceptions.Exit) as exc_info:
            run_async_command(_raise(SessionNotFoundError("s1")))

        assert exc_info.value.exit_code == 1
        assert "Session not found: s1" in capsys.readouterr().out

    def test_storage_error_message_printed(self, capsys):
        with pytest.raises(click.exceptions.Exit):
            run_async_command(_raise(StorageError("Session already exists: s1")))
        assert "Session already exists: s1" in capsys.readouterr().out

    def test_other_exceptions_propagate(self):
        with pytest.raises(ValueError, match="bad input"):
            run_async_command(_raise(ValueError("bad input")))
