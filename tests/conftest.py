"""Shared pytest fixtures for the full cratekit test suite."""

from __future__ import annotations

import io

import pytest

from cratekit.filesystem.resilient import ResilientFileSystem
from cratekit.filesystem.retry import RetryPolicy
from cratekit.telemetry.logger import OperationLogger


@pytest.fixture
def log_sink() -> io.StringIO:
    """Provide an in-memory sink capturing operation log lines."""

    return io.StringIO()


@pytest.fixture
def operation_logger(log_sink: io.StringIO) -> OperationLogger:
    """Provide a logger writing into `log_sink`."""

    return OperationLogger(sink=log_sink)


@pytest.fixture
def sleeps() -> list[float]:
    """Collect retry delays requested by the file system under test."""

    return []


@pytest.fixture
def file_system(operation_logger: OperationLogger, sleeps: list[float]) -> ResilientFileSystem:
    """Provide a file system whose retries never actually sleep."""

    policy = RetryPolicy(attempts=3, delay_seconds=0.01, sleeper=sleeps.append)
    return ResilientFileSystem(retry_policy=policy, logger=operation_logger)
