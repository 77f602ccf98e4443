"""
Shared fixtures for pagedmd tests
"""

from typing import List

import pytest
from loguru import logger

from pagedmd.lib.engine import Engine, engine_create, engines_clear
from pagedmd.models import EngineConfig


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test"""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def engine() -> Engine:
    """Engine with default configuration and no extensions"""
    return engine_create(EngineConfig())


@pytest.fixture
def full_engine() -> Engine:
    """Engine with both bundled extensions enabled"""
    return engine_create(EngineConfig(ttrpg=True, dimm_city=True))


@pytest.fixture(autouse=True)
def engine_cache_reset():
    """Keep cached engines from leaking between tests"""
    yield
    engines_clear()
