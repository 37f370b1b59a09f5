"""Salesforce API client."""
import logging
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from simple_salesforce import Salesforce
from simple_salesforce.exceptions import SalesforceAuthenticationFailed

from .config import SalesforceConfig
from .connection_state import ConnectionContext, ConnectionState
from .errors import AuthenticationError, ErrorCode
from .token_storage import TokenStorage

logger = logging.getLogger(__name__)


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter that applies a default timeout to requests sent without one."""

    def __init__(self, *args, timeout: Optional[float] = None, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


class SalesforceClient:
    """Owns the simple-salesforce connection and how it is established.

    Credentials are tried in order: tokens kept in the keyring (refreshed
    first when a refresh token and client id are available), a configured
    access token, then username/password login.
    """

    def __init__(
        self,
        config: SalesforceConfig,
        storage: Optional[TokenStorage] = None,
        connection_factory: Callable[..., Any] = Salesforce,
        http_session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.storage = storage or TokenStorage()
        self.connection_factory = connection_factory
        self.http_session = http_session or self._build_session()
        self.context = ConnectionContext(instance_url=config.instance_url)
        self.sf = None

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        adapter = TimeoutHTTPAdapter(timeout=self.config.timeout_seconds, max_retries=self.config.max_retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def is_connected(self) -> bool:
        return self.context.state is ConnectionState.CONNECTED and self.sf is not None

    def get_connection(self):
        """Get the Salesforce connection instance."""
        return self.sf

    def connect(self):
        """Establish a connection, raising AuthenticationError on failure."""
        logger.info("Connecting to Salesforce...")
        self.context.update_state(ConnectionState.CONNECTING)
        try:
            self.sf = self._open_connection()
        except AuthenticationError as e:
            self.sf = None
            self.context.update_state(ConnectionState.ERROR, str(e))
            logger.error(f"Failed to connect to Salesforce: {str(e)}")
            raise
        except (SalesforceAuthenticationFailed, requests.RequestException) as e:
            self.sf = None
            self.context.update_state(ConnectionState.ERROR, str(e))
            logger.error(f"Failed to connect to Salesforce: {str(e)}")
            raise AuthenticationError(
                f"Salesforce authentication failed: {str(e)}",
                ErrorCode.CONNECTION_FAILED,
                cause=e,
            )

        self.context.update_state(ConnectionState.CONNECTED)
        logger.info(f"Connected to Salesforce using {self.context.auth_method} credentials")
        return self.sf

    def disconnect(self) -> None:
        logger.info("Disconnecting from Salesforce")
        self.sf = None
        self.context.update_state(ConnectionState.DISCONNECTED)

    def logout(self) -> None:
        """Disconnect and forget any stored tokens."""
        self.disconnect()
        self.storage.clear_tokens()

    def _open_connection(self):
        tokens = self.storage.get_tokens()
        if tokens:
            if tokens.get("refresh_token") and self.config.client_id:
                tokens = self.refresh_tokens(tokens)
            instance_url = tokens.get("instance_url") or self.config.instance_url
            if instance_url:
                return self._session_connection("stored", instance_url, tokens["access_token"])
            logger.warning("Stored tokens have no instance URL, ignoring them")

        if self.config.access_token:
            if not self.config.instance_url:
                raise AuthenticationError("SFDC_INSTANCE_URL is required when using SFDC_ACCESS_TOKEN")
            return self._session_connection("access_token", self.config.instance_url,
                                            self.config.access_token)

        if self.config.username and self.config.password:
            self.context.auth_method = "password"
            self.context.instance_url = self.config.instance_url
            return self.connection_factory(
                username=self.config.username,
                password=self.config.password,
                security_token=self.config.security_token or "",
                domain=self.config.domain,
                version=self.config.version_number,
                session=self.http_session,
            )

        raise AuthenticationError(
            "No Salesforce credentials available. Configure SFDC_ACCESS_TOKEN or "
            "SFDC_USERNAME/SFDC_PASSWORD, or store tokens in the keyring."
        )

    def _session_connection(self, method: str, instance_url: str, access_token: str):
        self.context.auth_method = method
        self.context.instance_url = instance_url
        return self.connection_factory(
            instance_url=instance_url,
            session_id=access_token,
            version=self.config.version_number,
            session=self.http_session,
        )

    def refresh_tokens(self, tokens: Dict[str, Any]) -> Dict[str, Any]:
        """Exchange a refresh token for a new access token and store the result."""
        instance_url = tokens.get("instance_url") or self.config.instance_url
        if not instance_url:
            raise AuthenticationError("Cannot refresh tokens without an instance URL")

        logger.info("Refreshing Salesforce access token")
        response = self.http_session.post(
            f"{instance_url}/services/oauth2/token",
            data={
                "grant_type": "refresh_token",
                "client_id": self.config.client_id,
                "refresh_token": tokens["refresh_token"],
            },
            timeout=self.config.timeout_seconds,
        )
        if response.status_code != 200:
            logger.error(f"Token refresh failed: {response.status_code}")
            raise AuthenticationError(f"Token refresh failed: {response.status_code}")

        payload = response.json()
        refreshed = {
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token", tokens["refresh_token"]),
            "instance_url": payload.get("instance_url", instance_url),
        }
        self.storage.save_tokens(refreshed)
        return refreshed


def describe_sobject(sf, object_name: str) -> Dict[str, Any]:
    """Describe one sObject through a simple-salesforce connection."""
    return getattr(sf, object_name).describe()


def oauth_get(sf, path: str) -> Dict[str, Any]:
    """GET an endpoint under ``/services/oauth2/`` with the connection's session."""
    url = f"https://{sf.sf_instance}/services/oauth2/{path}"
    response = sf.session.get(url, headers=sf.headers)
    response.raise_for_status()
    return response.json()
