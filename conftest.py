import copy
import itertools
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import NotFound


# ------------------ IN-MEMORY FIRESTORE ------------------
class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self, self._collection.docs.get(self.id))

    def set(self, data, merge=False):
        if merge and self.id in self._collection.docs:
            self._collection.docs[self.id].update(copy.deepcopy(data))
        else:
            self._collection.docs[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self._collection.docs:
            raise NotFound(f"No document to update: {self._collection.name}/{self.id}")
        self._collection.docs[self.id].update(copy.deepcopy(data))

    def delete(self):
        self._collection.docs.pop(self.id, None)

    def collection(self, name):
        return self._collection.subcollection(self.id, name)


class FakeQuery:
    def __init__(self, collection, filters=(), limit=None):
        self._collection = collection
        self._filters = tuple(filters)
        self._limit = limit

    def where(self, *, filter):
        assert filter.op_string == "==", "only equality filters are used by the app"
        return FakeQuery(self._collection, self._filters + ((filter.field_path, filter.value),), self._limit)

    def limit(self, count):
        return FakeQuery(self._collection, self._filters, count)

    def stream(self):
        matched = []
        for doc_id, data in list(self._collection.docs.items()):
            if all(data.get(field) == value for field, value in self._filters):
                matched.append(FakeSnapshot(FakeDocument(self._collection, doc_id), data))
        if self._limit is not None:
            matched = matched[:self._limit]
        return iter(matched)


class FakeCollection(FakeQuery):
    _ids = itertools.count(1)

    def __init__(self, name):
        super().__init__(self)
        self.name = name
        self.docs = {}
        self._subcollections = {}

    def document(self, doc_id=None):
        return FakeDocument(self, doc_id or f"{self.name}-{next(self._ids)}")

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.utcnow(), ref

    def subcollection(self, doc_id, name):
        return self._subcollections.setdefault((doc_id, name), FakeCollection(name))


class FakeBatch:
    def __init__(self):
        self._ops = []

    def update(self, ref, data):
        self._ops.append((ref, data))

    def commit(self):
        for ref, data in self._ops:
            ref.update(data)
        self._ops = []


class FakeFirestore:
    def __init__(self):
        self._collections = {}

    def collection(self, name):
        return self._collections.setdefault(name, FakeCollection(name))

    def batch(self):
        return FakeBatch()

    def seed(self, name, doc_id, data):
        self.collection(name).document(doc_id).set(data)

    def data(self, name, doc_id):
        return self.collection(name).docs.get(doc_id)


# ------------------ FIXTURES ------------------
@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def flask_app(db):
    from app import app

    app.config.update(TESTING=True, FIRESTORE_CLIENT=db, MAIL_USERNAME="")
    yield app
    app.config["FIRESTORE_CLIENT"] = None


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def auth_headers(flask_app):
    def make(uid="user-1", role="user", email="user@example.com"):
        with flask_app.app_context():
            token = create_access_token(identity=uid, additional_claims={"role": role, "email": email})
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(uid="admin-1", role="admin", email="admin@example.com")


@pytest.fixture
def pushes(monkeypatch):
    """Record task-assignment pushes instead of sending them."""
    import sos_service

    sent = []

    def fake_push(db, alert_id, alert):
        sent.append((alert_id, alert["assignedTeam"]["driverId"]))
        return True

    monkeypatch.setattr(sos_service, "send_task_assignment_notification", fake_push)
    return sent
