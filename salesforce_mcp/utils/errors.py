"""Error taxonomy for the Salesforce MCP Server.

Every error raised below the dispatch boundary is one of these (or a library
error that the boundary renders as-is).
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


class SalesforceMCPError(Exception):
    """Base class for errors raised by this server"""


class ValidationError(SalesforceMCPError):
    """Malformed or missing tool arguments. Never reaches the network."""


class AuthError(SalesforceMCPError):
    """Credential misconfiguration or a rejected login/token exchange"""


class OperationTimeoutError(SalesforceMCPError, TimeoutError):
    """Session acquisition or a tool call exceeded its deadline"""


class NotFoundError(SalesforceMCPError):
    """A named class, trigger, object, user or profile does not exist"""


class PlatformError(SalesforceMCPError):
    """The remote call itself reported failure"""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.error_code = error_code

    @classmethod
    def from_salesforce_error(cls, error: Any) -> "PlatformError":
        """Build from a simple_salesforce ``SalesforceError``.

        The REST API answers failures with a list of ``{errorCode, message}``
        entries; the first one names the error.
        """
        content = getattr(error, "content", None)
        if isinstance(content, list) and content and isinstance(content[0], dict):
            first = content[0]
            code = first.get("errorCode")
            message = first.get("message") or str(error)
            return cls(f"{code}: {message}" if code else message, error_code=code)
        if isinstance(content, dict) and content.get("message"):
            code = content.get("errorCode")
            return cls(f"{code}: {content['message']}" if code else content["message"], error_code=code)
        return cls(str(error))
