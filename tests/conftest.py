# tests/conftest.py
import os
import tempfile

# La configuración se lee al importar la app: BD en memoria y bcrypt rápido.
os.environ.setdefault("HOSTEL_DATABASE_URL", "sqlite://")
os.environ.setdefault("HOSTEL_BCRYPT_ROUNDS", "4")
os.environ.setdefault("HOSTEL_JWT_SECRET", "test-secret")
os.environ.setdefault("HOSTEL_UPLOAD_DIR", tempfile.mkdtemp(prefix="hostel-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from hostel_portal.main import app, engine, repo as app_repo  # noqa: E402

STUDENT = {
    "name": "Asha Verma",
    "email": "asha@uni.com",
    "password": "Secret#123",
    "role": "student",
    "hostel": "Himalaya",
    "room_no": "L-204",
    "student_id": "22BCE2210",
}

WARDEN = {
    "name": "R. Iyer",
    "email": "warden@hostel.com",
    "password": "Warden#123",
    "role": "admin",
    "block": "L",
}


@pytest.fixture(autouse=True)
def clean_db():
    """Esquema vacío para cada prueba (el engine en memoria es compartido)."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture(scope="module")
def client():
    """Cliente de pruebas para peticiones HTTP síncronas contra la app."""
    return TestClient(app)


@pytest.fixture()
def repo():
    return app_repo


def signup_and_login(client, payload) -> str:
    resp = client.post("/api/signup", json=payload)
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/login", json={"email": payload["email"], "password": payload["password"]})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def student_token(client):
    return signup_and_login(client, STUDENT)


@pytest.fixture()
def warden_token(client):
    return signup_and_login(client, WARDEN)


# ============================================================================
# Dobles para el controlador de borradores
# ============================================================================

class FakeClock:
    """Reloj manual en milisegundos."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeHandle:
    def __init__(self, due: int, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Temporizadores manuales; ``advance`` mueve también el reloj."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.clock.now + int(delay * 1000), callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, ms: int) -> None:
        target = self.clock.now + ms
        while True:
            due = sorted(
                (h for h in self.pending if h.due <= target),
                key=lambda h: h.due,
            )
            if not due:
                break
            handle = due[0]
            self.clock.now = max(self.clock.now, handle.due)
            handle.cancelled = True  # ya disparado
            handle.callback()
        self.clock.now = target


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, severity, message, description=None):
        self.events.append((severity.value, message, description))

    @property
    def messages(self):
        return [message for _, message, _ in self.events]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture()
def notifier():
    return RecordingNotifier()
