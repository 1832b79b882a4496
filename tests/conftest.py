"""Shared pytest fixtures for the full Narrafix test suite."""

from __future__ import annotations

from collections.abc import Iterator

from loguru import logger
import pytest


@pytest.fixture(autouse=True)
def _reset_loguru_handlers() -> Iterator[None]:
    """Drop loguru sinks after each test so CLI runs never leave closed streams behind."""

    yield
    logger.remove()


@pytest.fixture
def loguru_messages() -> Iterator[list[str]]:
    """Collect loguru messages emitted during a test."""

    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), format="{message}")
    yield messages
    logger.remove(handler_id)
