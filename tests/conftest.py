# tests/conftest.py

import os
import sys

# Add the project root (the folder containing `relaynode/`) to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from fastapi.testclient import TestClient

from relaynode.db.errors import DocumentNotFound, PersistenceError, RevisionConflict
from relaynode.db.mongo import next_revision
from relaynode.main import app
from relaynode.routers.deps import get_message_service
from relaynode.services.message_service import MessageService

NOW = 1_700_000_000


class InMemoryStore:
    """Dict-backed store honouring the same revision rules as MongoDocumentStore."""

    def __init__(self):
        self.docs = {}
        self.deleted = []
        self.fail_deletes = False

    async def put(self, doc_id, document):
        body = dict(document)
        body.pop("_id", None)
        current_rev = body.pop("_rev", None)
        existing = self.docs.get(doc_id)
        if existing is None and current_rev is not None:
            raise RevisionConflict(f"Document {doc_id} update conflict")
        if existing is not None and existing["_rev"] != current_rev:
            raise RevisionConflict(f"Document {doc_id} update conflict")
        rev = next_revision(current_rev)
        self.docs[doc_id] = {"_id": doc_id, "_rev": rev, **body}
        return rev

    async def get(self, doc_id):
        if doc_id not in self.docs:
            raise DocumentNotFound(f"Document {doc_id} not found")
        return dict(self.docs[doc_id])

    async def find(self, selector, sort=None):
        matches = [dict(doc) for doc in self.docs.values() if self._matches(doc, selector)]
        for entry in reversed(sort or []):
            for field, order in entry.items():
                matches.sort(key=lambda doc: doc.get(field, 0), reverse=order == "desc")
        for doc in matches:
            yield doc

    @staticmethod
    def _matches(doc, selector):
        for field, expected in selector.items():
            if isinstance(expected, dict):
                value = doc.get(field)
                if value is None or value <= expected["$gt"]:
                    return False
            elif doc.get(field) != expected:
                return False
        return True

    async def delete(self, doc_id, revision):
        if self.fail_deletes:
            raise PersistenceError("store offline")
        existing = self.docs.get(doc_id)
        if existing is None:
            raise DocumentNotFound(f"Document {doc_id} not found")
        if existing["_rev"] != revision:
            raise RevisionConflict(f"Document {doc_id} revision {revision} is stale")
        del self.docs[doc_id]
        self.deleted.append(doc_id)


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, clock):
    return MessageService(store, timeout=1.0, clock=clock)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_message_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_message(message_id, recipient_id="alice", timestamp=NOW, **extra):
    payload = {
        "id": message_id,
        "senderId": "bob",
        "senderUsername": "bob",
        "senderDeviceId": 1,
        "recipientId": recipient_id,
        "recipientUsername": recipient_id,
        "messageType": "ciphertext",
        "encryptedPayload": "b64:AAAA",
        "timestamp": timestamp,
    }
    payload.update(extra)
    return payload
