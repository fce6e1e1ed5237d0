import sys

import pytest
from loguru import logger

from tests.doubles import ScriptedTransport


@pytest.fixture(autouse=True)
def _reset_logger():
    """Commands reconfigure loguru; put the default sink back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def always_20ms():
    return ScriptedTransport([20.0])
