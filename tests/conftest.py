# tests/conftest.py
# Shared fixtures for the hl7_engine test suite.
import logging

import pytest

from helpers import Recorder


@pytest.fixture
def recorder():
    """Factory for thread-safe event recorders."""
    return Recorder


@pytest.fixture(autouse=True)
def _quiet_engine_logs():
    # Socket tests emit many status lines; keep failures readable.
    logger = logging.getLogger("hl7_engine")
    previous = logger.level
    logger.setLevel(logging.WARNING)
    try:
        yield
    finally:
        logger.setLevel(previous)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # configure_logging() points the root handler at the captured stderr of
    # the test that called it
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
