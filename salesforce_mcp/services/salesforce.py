"""Salesforce connection management: credential resolution, login, sessions.

Two mutually exclusive login flows are supported, selected by
``connection_type``. Each flow only ever reads its own credential fields.
A fresh session is acquired for every tool call; nothing is pooled or cached.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlparse

import requests
from simple_salesforce import Salesforce, SalesforceLogin
from simple_salesforce.exceptions import SalesforceAuthenticationFailed

from salesforce_mcp.config import ConnectionType, SalesforceConfig
from salesforce_mcp.utils.errors import AuthError, OperationTimeoutError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/services/oauth2/token"
SALESFORCE_DOMAIN_SUFFIX = ".salesforce.com"


class TimeoutSession(requests.Session):
    """requests session that bounds every request it sends.

    A worker thread abandoned by ``asyncio.wait_for`` keeps running; the
    timeout guarantees it still finishes and frees its executor slot.
    """

    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


@dataclass(frozen=True)
class Session:
    """Authenticated handle attached to every platform call"""

    instance_url: str
    access_token: str
    api_version: str
    # running user, when the login exchange reports it
    user_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"Session(instance_url={self.instance_url!r}, api_version={self.api_version!r})"


@dataclass(frozen=True)
class PasswordCredentials:
    login_url: str
    username: str
    password: str
    security_token: str = ""


@dataclass(frozen=True)
class ClientCredentials:
    instance_url: str
    client_id: str
    client_secret: str


Credentials = Union[PasswordCredentials, ClientCredentials]


def resolve_credentials(config: SalesforceConfig) -> Credentials:
    """Pick the fields required by ``config.connection_type``.

    Raises:
        AuthError: a required field is missing or empty. No network call is made.
    """
    if config.connection_type == ConnectionType.OAUTH_CLIENT_CREDENTIALS:
        if not config.client_id or not config.client_secret:
            raise AuthError("Client ID and Client Secret are required for OAuth 2.0 Client Credentials")
        return ClientCredentials(
            instance_url=config.instance_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )

    if not config.username or not config.password:
        raise AuthError("Username and Password are required for Username/Password authentication")
    return PasswordCredentials(
        login_url=config.instance_url,
        username=config.username,
        password=config.password,
        security_token=config.security_token or "",
    )


def _login_domain(login_url: str) -> str:
    """``https://acme.my.salesforce.com`` -> ``acme.my``; ``https://login.salesforce.com`` -> ``login``"""
    host = urlparse(login_url).hostname or login_url
    if not host.endswith(SALESFORCE_DOMAIN_SUFFIX):
        raise AuthError(f"Username/Password login needs a *.salesforce.com login URL: {login_url}")
    return host[:-len(SALESFORCE_DOMAIN_SUFFIX)]


def login_with_password(credentials: PasswordCredentials, api_version: str, timeout: float) -> Session:
    """SOAP login; the security token is appended to the password."""
    logger.info("Connecting via Username/Password")
    try:
        session_id, instance = SalesforceLogin(
            username=credentials.username,
            password=credentials.password + credentials.security_token,
            domain=_login_domain(credentials.login_url),
            sf_version=api_version,
            session=TimeoutSession(timeout),
        )
    except SalesforceAuthenticationFailed as e:
        raise AuthError(f"Login failed: {e.message}") from e
    except requests.Timeout as e:
        raise OperationTimeoutError("Login request timeout") from e

    return Session(instance_url=f"https://{instance}", access_token=session_id, api_version=api_version)


def _identity_user_id(identity_url: Optional[str]) -> Optional[str]:
    """``https://login.salesforce.com/id/00Dxx/005xx`` -> ``005xx``"""
    if not identity_url:
        return None
    return identity_url.rstrip("/").rsplit("/", 1)[-1]


def login_with_client_credentials(credentials: ClientCredentials, api_version: str, timeout: float) -> Session:
    """OAuth 2.0 client-credentials grant against the org's token endpoint."""
    logger.info("Connecting via OAuth 2.0 Client Credentials")
    token_url = credentials.instance_url.rstrip("/") + TOKEN_PATH
    try:
        response = requests.post(
            token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
            },
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except requests.Timeout as e:
        raise OperationTimeoutError("OAuth request timeout") from e

    try:
        payload = response.json()
    except ValueError as e:
        raise AuthError(f"Failed to parse OAuth response: {e}") from e

    if response.status_code != 200:
        raise AuthError(f"OAuth failed: {payload.get('error')} - {payload.get('error_description')}")

    return Session(
        instance_url=payload["instance_url"],
        access_token=payload["access_token"],
        api_version=api_version,
        user_id=_identity_user_id(payload.get("id")),
    )


def login(credentials: Credentials, config: SalesforceConfig) -> Session:
    """Blocking login for the resolved credential flow"""
    if isinstance(credentials, ClientCredentials):
        return login_with_client_credentials(credentials, config.api_version, config.timeout_seconds)
    return login_with_password(credentials, config.api_version, config.timeout_seconds)


async def acquire_session(config: SalesforceConfig) -> Session:
    """Produce a live session, racing the login against ``config.timeout``.

    On timeout the login thread is abandoned, not cancelled.

    Raises:
        AuthError: missing credentials or rejected login
        OperationTimeoutError: the exchange did not settle in time
    """
    credentials = resolve_credentials(config)
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(login, credentials, config),
            timeout=config.timeout_seconds,
        )
    except OperationTimeoutError:
        raise
    except asyncio.TimeoutError:
        logger.error("Connection timeout after %sms", config.timeout)
        raise OperationTimeoutError("Connection timeout") from None


def open_connection(session: Session, timeout: float) -> Salesforce:
    """simple_salesforce client bound to ``session``; makes no network call.

    Every request it sends is bounded by ``timeout`` seconds.
    """
    return Salesforce(
        instance_url=session.instance_url,
        session_id=session.access_token,
        version=session.api_version,
        session=TimeoutSession(timeout),
    )
