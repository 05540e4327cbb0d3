"""
Configuration management for Salesforce MCP Server
Supports environment variables and .env files
"""
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class ConnectionType(str, Enum):
    """How the server authenticates against the org"""

    USER_PASSWORD = "User_Password"
    OAUTH_CLIENT_CREDENTIALS = "OAuth_2.0_Client_Credentials"


LOG_LEVELS = {"error": "ERROR", "warn": "WARNING", "warning": "WARNING", "info": "INFO", "debug": "DEBUG"}


class SalesforceConfig(BaseSettings):
    """Salesforce MCP Server configuration"""

    # Connection
    connection_type: ConnectionType = Field(
        default=ConnectionType.USER_PASSWORD,
        description="User_Password or OAuth_2.0_Client_Credentials",
    )
    instance_url: str = Field(
        default="https://login.salesforce.com",
        description="Login URL (username/password) or My Domain URL (client credentials)",
    )

    # Username/Password flow
    username: Optional[str] = Field(default=None, description="Salesforce username")
    password: Optional[str] = Field(default=None, description="Salesforce password")
    security_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SALESFORCE_TOKEN", "SALESFORCE_SECURITY_TOKEN", "security_token"),
        description="Security token appended to the password",
    )

    # OAuth 2.0 Client Credentials flow
    client_id: Optional[str] = Field(default=None, description="Connected app consumer key")
    client_secret: Optional[str] = Field(default=None, description="Connected app consumer secret")

    # API Configuration
    api_version: str = Field(default="58.0", description="Salesforce API version")
    timeout: int = Field(default=30000, gt=0, description="Deadline for login and for each tool call, in ms")

    # Logging
    log_level: str = Field(default="info", description="Logging level (error, warn, info, debug)")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # Server
    server_name: str = Field(default="salesforce-mcp-server", description="MCP server name")
    http_host: str = Field(default="127.0.0.1", description="HTTP/SSE server host")
    http_port: int = Field(default=8000, description="HTTP/SSE server port")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "SALESFORCE_"
        populate_by_name = True
        extra = "ignore"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: error, warn, info, debug (got {value!r})")
        return level

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    @property
    def logging_level(self) -> str:
        """Name of the stdlib logging level matching ``log_level``"""
        return LOG_LEVELS[self.log_level]


def load_config(**overrides) -> SalesforceConfig:
    """Build configuration from environment/.env.

    Called once at startup; the result is passed explicitly to every component
    that needs it.
    """
    return SalesforceConfig(**overrides)
