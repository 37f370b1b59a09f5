import pytest
import requests
from requests.adapters import HTTPAdapter
from simple_salesforce.exceptions import SalesforceAuthenticationFailed

from conftest import FakeHTTPSession, FakeResponse
from salesforce_mcp.config import SalesforceConfig
from salesforce_mcp.connection_state import ConnectionState
from salesforce_mcp.errors import AuthenticationError, ErrorCode
from salesforce_mcp.salesforce import SalesforceClient, TimeoutHTTPAdapter

INSTANCE_URL = "https://example.my.salesforce.com"


class FakeStorage:
    def __init__(self, tokens=None):
        self.tokens = tokens
        self.saved = []
        self.cleared = False

    def get_tokens(self):
        return self.tokens

    def save_tokens(self, tokens):
        self.saved.append(tokens)
        return True

    def clear_tokens(self):
        self.cleared = True
        self.tokens = None


class FakeFactory:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return object()


def _client(config, tokens=None, post_response=None, error=None):
    storage = FakeStorage(tokens)
    factory = FakeFactory(error)
    session = FakeHTTPSession(post_response=post_response)
    client = SalesforceClient(config, storage=storage, connection_factory=factory, http_session=session)
    return client, storage, factory, session


def test_stored_tokens_are_used_first():
    config = SalesforceConfig(access_token="configured", instance_url="https://other.my.salesforce.com")
    client, _, factory, session = _client(config, {"access_token": "stored", "instance_url": INSTANCE_URL})

    sf = client.connect()

    assert client.is_connected()
    assert client.get_connection() is sf
    assert client.context.auth_method == "stored"
    assert factory.calls == [{
        "instance_url": INSTANCE_URL,
        "session_id": "stored",
        "version": "59.0",
        "session": session,
    }]
    assert session.posts == []


def test_stored_tokens_are_refreshed():
    config = SalesforceConfig(client_id="client-id")
    tokens = {"access_token": "old", "refresh_token": "refresh", "instance_url": INSTANCE_URL}
    client, storage, factory, session = _client(
        config, tokens, post_response=FakeResponse({"access_token": "new"}))

    client.connect()

    assert session.posts == [(f"{INSTANCE_URL}/services/oauth2/token", {
        "grant_type": "refresh_token",
        "client_id": "client-id",
        "refresh_token": "refresh",
    })]
    assert storage.saved == [{"access_token": "new", "refresh_token": "refresh", "instance_url": INSTANCE_URL}]
    assert factory.calls[0]["session_id"] == "new"


def test_failed_refresh():
    config = SalesforceConfig(client_id="client-id")
    tokens = {"access_token": "old", "refresh_token": "refresh", "instance_url": INSTANCE_URL}
    client, storage, factory, _ = _client(config, tokens, post_response=FakeResponse({}, status_code=400))

    with pytest.raises(AuthenticationError) as exc_info:
        client.connect()

    assert exc_info.value.message == "Token refresh failed: 400"
    assert client.context.state is ConnectionState.ERROR
    assert not client.is_connected()
    assert storage.saved == []
    assert factory.calls == []


def test_configured_access_token():
    client, _, factory, _ = _client(SalesforceConfig(access_token="token", instance_url=INSTANCE_URL))
    client.connect()
    assert client.context.auth_method == "access_token"
    assert factory.calls[0]["session_id"] == "token"
    assert factory.calls[0]["instance_url"] == INSTANCE_URL


def test_access_token_needs_instance_url():
    client, _, factory, _ = _client(SalesforceConfig(access_token="token"))
    with pytest.raises(AuthenticationError):
        client.connect()
    assert factory.calls == []


def test_password_login():
    config = SalesforceConfig(username="ada@example.com", password="secret", domain="test", api_version="v60.0")
    client, _, factory, session = _client(config)

    client.connect()

    assert client.context.auth_method == "password"
    assert factory.calls == [{
        "username": "ada@example.com",
        "password": "secret",
        "security_token": "",
        "domain": "test",
        "version": "60.0",
        "session": session,
    }]


def test_no_credentials():
    client, _, _, _ = _client(SalesforceConfig())
    with pytest.raises(AuthenticationError) as exc_info:
        client.connect()
    assert exc_info.value.code == ErrorCode.AUTHENTICATION_FAILED
    assert client.context.state is ConnectionState.ERROR
    assert client.get_connection() is None


def test_login_rejected():
    error = SalesforceAuthenticationFailed("INVALID_LOGIN", "Invalid username or password")
    client, _, _, _ = _client(SalesforceConfig(username="ada", password="wrong"), error=error)

    with pytest.raises(AuthenticationError) as exc_info:
        client.connect()

    assert exc_info.value.code == ErrorCode.CONNECTION_FAILED
    assert exc_info.value.cause is error
    assert client.context.last_error


def test_logout_clears_tokens():
    client, storage, _, _ = _client(SalesforceConfig(), {"access_token": "stored", "instance_url": INSTANCE_URL})
    client.connect()
    client.logout()
    assert storage.cleared
    assert not client.is_connected()
    assert client.context.state is ConnectionState.DISCONNECTED


def test_session_applies_timeout_and_retries(monkeypatch):
    client = SalesforceClient(SalesforceConfig(timeout_ms=5000, max_retries=2), storage=FakeStorage())
    adapter = client.http_session.get_adapter(f"{INSTANCE_URL}/services/data/")

    assert isinstance(adapter, TimeoutHTTPAdapter)
    assert adapter.timeout == 5.0
    assert adapter.max_retries.total == 2

    sent = []
    monkeypatch.setattr(HTTPAdapter, "send", lambda self, request, **kwargs: sent.append(kwargs))
    request = requests.Request("GET", f"{INSTANCE_URL}/services/data/").prepare()
    adapter.send(request)
    adapter.send(request, timeout=1)

    assert [kwargs["timeout"] for kwargs in sent] == [5.0, 1]


def test_zero_timeout_means_no_timeout():
    client = SalesforceClient(SalesforceConfig(timeout_ms=0), storage=FakeStorage())
    assert client.http_session.get_adapter(INSTANCE_URL).timeout is None
