import sys

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _restore_loguru_sink():
    """The CLI swaps loguru's sinks; put the default one back after each test."""
    yield
    logger.remove()
    logger.add(sys.stderr)
