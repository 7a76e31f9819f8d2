"""
Shared test fixtures and configuration.
"""

import pytest
import os
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/concierge_test_data")
os.environ.setdefault("CONFIG_DIR", "/tmp/concierge_test_config")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LLM_API_KEY", "")

from concierge.core.business import BusinessConfig, BusinessProfile
from concierge.core.ids import IdGenerator
from concierge.core.orders import OrdersLedger
from concierge.core.session_registry import SessionRegistry
from concierge.storage import LocalStorage

from helpers import BUSINESS


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def business_config(tmp_path):
    config = BusinessConfig(str(tmp_path / "config"))
    config.profile = BusinessProfile.model_validate(BUSINESS)
    config.rules = "Always greet customers warmly."
    return config


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.notify = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def ledger(storage, notifier):
    return OrdersLedger(storage, notifier=notifier, notify_orders=True)


@pytest.fixture
def ids():
    return IdGenerator()


@pytest.fixture
def registry():
    return SessionRegistry(retention=50)
