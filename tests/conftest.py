"""
Shared pytest fixtures.
"""

import logging

import pytest

from workstation_setup.logging_config import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers so no test writes to another test's captured stream."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
