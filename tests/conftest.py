import os
import sys

import pytest

# Make the src layout importable without installing the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


class FakeHTTPSession:
    def __init__(self, get_payload=None, post_response=None):
        self.get_payload = get_payload
        self.post_response = post_response
        self.gets = []
        self.posts = []

    def get(self, url, headers=None):
        self.gets.append(url)
        return FakeResponse(self.get_payload)

    def post(self, url, data=None, timeout=None):
        self.posts.append((url, data))
        return self.post_response


class FakeSObject:
    def __init__(self, sf, name):
        self.sf = sf
        self.name = name

    def describe(self):
        self.sf.describe_calls.append(self.name)
        if self.name in self.sf.describe_errors:
            raise self.sf.describe_errors[self.name]
        if self.name not in self.sf.describes:
            raise Exception(f"INVALID_TYPE: sObject type '{self.name}' is not supported")
        return self.sf.describes[self.name]


class FakeSalesforce:
    """Stands in for a simple_salesforce.Salesforce connection."""

    def __init__(self, describes=None, describe_errors=None, query_result=None,
                 search_result=None, restful_results=None, global_describe=None,
                 userinfo=None):
        self.describes = describes or {}
        self.describe_errors = describe_errors or {}
        self.query_result = query_result
        self.search_result = search_result
        self.restful_results = restful_results or {}
        self.global_describe = global_describe or {"sobjects": []}
        self.sf_instance = "example.my.salesforce.com"
        self.headers = {"Authorization": "Bearer token"}
        self.session = FakeHTTPSession(get_payload=userinfo)
        self.describe_calls = []
        self.queries = []
        self.searches = []
        self.restful_calls = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return FakeSObject(self, name)

    def _result(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def query(self, soql):
        self.queries.append(soql)
        return self._result(self.query_result)

    def search(self, sosl):
        self.searches.append(sosl)
        return self._result(self.search_result)

    def restful(self, path, params=None):
        self.restful_calls.append((path, params))
        return self._result(self.restful_results.get(path))

    def describe(self):
        return self._result(self.global_describe)


class FakeClient:
    """Stands in for SalesforceClient."""

    def __init__(self, sf=None, connected=True, connect_error=None):
        self.sf = sf
        self.connected = connected and sf is not None
        self.connect_error = connect_error
        self.connect_calls = 0
        self.logout_calls = 0

    def is_connected(self):
        return self.connected

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = self.sf is not None
        return self.sf

    def get_connection(self):
        return self.sf if self.connected else None

    def logout(self):
        self.logout_calls += 1
        self.connected = False


class FakeKeyring:
    def __init__(self):
        self.entries = {}
        self.get_error = None

    def get_password(self, service, key):
        if self.get_error is not None:
            raise self.get_error
        return self.entries.get((service, key))

    def set_password(self, service, key, value):
        self.entries[(service, key)] = value

    def delete_password(self, service, key):
        from keyring.errors import PasswordDeleteError
        if (service, key) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, key)]


ACCOUNT_DESCRIBE = {
    "name": "Account",
    "fields": [
        {"name": "Id", "type": "id"},
        {"name": "Name", "type": "string"},
        {"name": "OwnerId", "type": "reference"},
        {"name": "Industry", "type": "picklist",
         "picklistValues": [
             {"value": "Tech", "label": "Technology", "active": True},
             {"value": "Old", "label": "Old", "active": False},
             {"value": "X", "label": "SSN 123-45-6789", "active": True},
         ]},
        {"name": "Hidden__c", "type": "string", "custom": True, "accessible": False},
    ],
}


@pytest.fixture
def fake_sf():
    return FakeSalesforce(describes={"Account": ACCOUNT_DESCRIBE})


@pytest.fixture
def fake_client(fake_sf):
    return FakeClient(fake_sf)


@pytest.fixture
def fake_keyring(monkeypatch):
    import keyring

    fake = FakeKeyring()
    monkeypatch.setattr(keyring, "get_password", fake.get_password)
    monkeypatch.setattr(keyring, "set_password", fake.set_password)
    monkeypatch.setattr(keyring, "delete_password", fake.delete_password)
    return fake
