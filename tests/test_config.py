import pydantic
import pytest

from salesforce_mcp.config import ConnectionType, SalesforceConfig, load_config


def test_defaults() -> None:
    config = SalesforceConfig(_env_file=None)
    assert config.connection_type is ConnectionType.USER_PASSWORD
    assert config.instance_url == "https://login.salesforce.com"
    assert config.api_version == "58.0"
    assert config.timeout == 30000
    assert config.timeout_seconds == 30.0
    assert config.logging_level == "INFO"


def test_reads_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("SALESFORCE_CONNECTION_TYPE", "OAuth_2.0_Client_Credentials")
    monkeypatch.setenv("SALESFORCE_INSTANCE_URL", "https://acme.my.salesforce.com")
    monkeypatch.setenv("SALESFORCE_CLIENT_ID", "cid")
    monkeypatch.setenv("SALESFORCE_CLIENT_SECRET", "csecret")
    monkeypatch.setenv("SALESFORCE_TIMEOUT", "5000")

    config = load_config(_env_file=None)

    assert config.connection_type is ConnectionType.OAUTH_CLIENT_CREDENTIALS
    assert config.instance_url == "https://acme.my.salesforce.com"
    assert config.client_id == "cid"
    assert config.client_secret == "csecret"
    assert config.timeout_seconds == 5.0


def test_security_token_reads_short_variable_name(monkeypatch) -> None:
    monkeypatch.setenv("SALESFORCE_TOKEN", "abc123")
    assert SalesforceConfig(_env_file=None).security_token == "abc123"


def test_log_level_is_normalized() -> None:
    config = SalesforceConfig(_env_file=None, log_level="WARN")
    assert config.log_level == "warn"
    assert config.logging_level == "WARNING"


def test_rejects_unknown_log_level() -> None:
    with pytest.raises(pydantic.ValidationError):
        SalesforceConfig(_env_file=None, log_level="verbose")


def test_rejects_non_positive_timeout() -> None:
    with pytest.raises(pydantic.ValidationError):
        SalesforceConfig(_env_file=None, timeout=0)
