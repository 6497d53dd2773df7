import os
import tempfile
import uuid

# must be set before domyjob.app.db.database is imported
_DB_DIR = tempfile.mkdtemp(prefix="domyjob-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["OPENAI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from domyjob.app.main import app
from domyjob.app.security.vault import CredentialVault
from domyjob.app.services import llm_client, mail_transport
from domyjob.app.services.memory_storage import MemStorage


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_client(client):
    username = f"user-{uuid.uuid4().hex[:8]}"
    r = client.post('/api/register', json={'username': username, 'password': 'pw-123456', 'name': 'Test User'})
    assert r.status_code == 201
    client.user = r.json()
    return client


@pytest.fixture
def other_client():
    """A second, independently logged-in user."""
    with TestClient(app) as c:
        r = c.post('/api/register', json={'username': f"other-{uuid.uuid4().hex[:8]}", 'password': 'pw-654321'})
        assert r.status_code == 201
        yield c


@pytest.fixture
def mem():
    return MemStorage()


@pytest.fixture
def vault():
    return CredentialVault("test-encryption-key")


class FakeLLM:
    """Scripted stand-in for the chat-completions client."""

    def __init__(self):
        self.needs_response = {}
        self.confidence = 0.9
        self.draft = {"draftResponse": "Thanks, I will confirm by Friday.",
                      "suggestedActions": [{"action": "Confirm budget", "priority": "high"}]}
        self.text = "generated text"
        self.fail = False
        self.json_calls = []
        self.text_calls = []

    def chat_json(self, messages, **kwargs):
        self.json_calls.append(messages)
        if self.fail:
            raise llm_client.LLMError("llm down")
        system = messages[0]["content"]
        if "require a response" in system:
            user = messages[1]["content"]
            verdict = next((v for k, v in self.needs_response.items() if k in user), False)
            return {"needsResponse": verdict, "confidence": self.confidence}
        return dict(self.draft)

    def chat_completion(self, messages, **kwargs):
        self.text_calls.append((messages, kwargs))
        if self.fail:
            raise llm_client.LLMError("llm down")
        return self.text

    @property
    def classify_calls(self):
        return [m for m in self.json_calls if "require a response" in m[0]["content"]]

    @property
    def draft_calls(self):
        return [m for m in self.json_calls if "require a response" not in m[0]["content"]]


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(llm_client, "chat_json", fake.chat_json)
    monkeypatch.setattr(llm_client, "chat_completion", fake.chat_completion)
    return fake


class FakeMailbox:
    """Replaces the IMAP/SMTP transport functions; records what the sync and send paths ask for."""

    def __init__(self):
        self.records = []
        self.connect_error = None
        self.send_error = None
        self.watermarks = []
        self.closed = 0
        self.sent = []

    def connect(self, settings, vault, timeout=None):
        if self.connect_error:
            raise self.connect_error
        vault.decrypt_credentials(settings.credentials)
        return mail_transport.MailSession(imap=None, account=settings.email)

    def fetch_since(self, session, folder, watermark):
        self.watermarks.append(watermark)
        return list(self.records)

    def close(self, session):
        self.closed += 1

    def send(self, settings, vault, reply, timeout=None):
        vault.decrypt_credentials(settings.credentials)
        if self.send_error:
            raise self.send_error
        self.sent.append(reply)


@pytest.fixture
def mailbox(monkeypatch):
    box = FakeMailbox()
    monkeypatch.setattr(mail_transport, "connect", box.connect)
    monkeypatch.setattr(mail_transport, "fetch_since", box.fetch_since)
    monkeypatch.setattr(mail_transport, "close", box.close)
    monkeypatch.setattr(mail_transport, "send", box.send)
    return box
