import re
import time

import pytest

from sform.exceptions import AuthError
from sform.orm import SalesforceORM
from sform.session import SessionManager

_BY_ID = re.compile(r"FROM (\w+) WHERE Id = '([^']*)'")


class FakeClient:
    """In-memory stand-in for a logged-in SOAP client."""

    def __init__(self, server_url="https://example.my.salesforce.com/services/Soap/u/60.0"):
        self.server_url = server_url
        self.user_id = "005FAKEUSER"
        self.rows = {}
        self.calls = []
        # Canned responses; when None the in-memory store answers
        self.query_response = None
        self.create_response = None
        self.update_response = None
        self.delete_response = None
        self.raise_on = {}
        self._next_id = 1

    @property
    def statements(self):
        return [args for op, args in self.calls if op == "query_all"]

    def _maybe_raise(self, op):
        if op in self.raise_on:
            raise self.raise_on[op]

    def query_all(self, statement):
        self.calls.append(("query_all", statement))
        self._maybe_raise("query_all")
        if self.query_response is not None:
            return self.query_response

        rows = []
        m = _BY_ID.search(statement)
        if m and m.group(2) in self.rows:
            rows = [dict(self.rows[m.group(2)])]
        return {"result": {"done": True, "records": rows, "size": len(rows)}}

    def create(self, records):
        self.calls.append(("create", records))
        self._maybe_raise("create")
        if self.create_response is not None:
            return self.create_response

        results = []
        for obj in records:
            new_id = f"001FAKE{self._next_id:011d}"
            self._next_id += 1
            row = {"attributes": {"type": obj["type"]}, "Id": new_id}
            row.update({k: v for k, v in obj.items() if k != "type"})
            self.rows[new_id] = row
            results.append({"id": new_id, "success": True, "errors": []})
        return {"result": results}

    def update(self, records):
        self.calls.append(("update", records))
        self._maybe_raise("update")
        if self.update_response is not None:
            return self.update_response

        results = []
        for obj in records:
            row = self.rows.setdefault(obj["Id"], {"attributes": {"type": obj["type"]}})
            row.update({k: v for k, v in obj.items() if k != "type"})
            results.append({"id": obj["Id"], "success": True, "errors": []})
        return {"result": results}

    def delete(self, ids):
        self.calls.append(("delete", ids))
        self._maybe_raise("delete")
        if self.delete_response is not None:
            return self.delete_response
        for record_id in ids:
            self.rows.pop(record_id, None)
        return {"result": [{"id": i, "success": True, "errors": []} for i in ids]}


class FakeTransport:
    """Counts logins and passes statements through untouched."""

    def __init__(self, client=None, login_delay=0.0):
        self.client = client or FakeClient()
        self.login_delay = login_delay
        self.login_calls = 0
        self.login_error = None

    def login(self):
        self.login_calls += 1
        if self.login_delay:
            time.sleep(self.login_delay)
        if self.login_error is not None:
            raise self.login_error
        return self.client

    def format_query(self, statement):
        return statement

    def format_object(self, fields, model_name):
        return dict(fields, type=model_name)

    def escape(self, text):
        return text.replace("\\", "\\\\").replace("'", "\\'")


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_transport(fake_client):
    return FakeTransport(fake_client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(fake_transport, clock):
    return SessionManager(fake_transport, clock=clock)


@pytest.fixture
def orm(fake_transport, session):
    orm = SalesforceORM(fake_transport, session=session)
    orm.add_model({"name": "Account", "fields": ["Name", "Industry"]})
    return orm


@pytest.fixture
def failing_transport(fake_client):
    transport = FakeTransport(fake_client)
    transport.login_error = AuthError("INVALID_LOGIN: Invalid username, password, security token")
    return transport
