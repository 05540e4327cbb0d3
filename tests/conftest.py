"""Shared fixtures. The platform is always a MagicMock; no test touches the network."""
from unittest.mock import MagicMock

import pytest

from salesforce_mcp.config import SalesforceConfig
from salesforce_mcp.mcp.registry import ToolContext


def make_config(**overrides) -> SalesforceConfig:
    values = {
        "connection_type": "User_Password",
        "instance_url": "https://login.salesforce.com",
        "username": "dev@example.com",
        "password": "secret",
        "security_token": "TOKEN",
        "timeout": 30000,
    }
    values.update(overrides)
    return SalesforceConfig(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in (
        "SALESFORCE_CONNECTION_TYPE", "SALESFORCE_INSTANCE_URL", "SALESFORCE_USERNAME",
        "SALESFORCE_PASSWORD", "SALESFORCE_TOKEN", "SALESFORCE_SECURITY_TOKEN",
        "SALESFORCE_CLIENT_ID", "SALESFORCE_CLIENT_SECRET", "SALESFORCE_TIMEOUT",
        "SALESFORCE_LOG_LEVEL", "SALESFORCE_API_VERSION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> SalesforceConfig:
    return make_config()


@pytest.fixture
def sf() -> MagicMock:
    return MagicMock(name="Salesforce")


@pytest.fixture
def metadata() -> MagicMock:
    return MagicMock(name="MetadataClient")


@pytest.fixture
def ctx(sf, metadata, config) -> ToolContext:
    return ToolContext(sf=sf, metadata=metadata, config=config)
