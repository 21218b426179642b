"""
Configuración de pytest para tests

Los repositorios Mongo y el servicio de email se sustituyen por dobles en
memoria vía app.dependency_overrides, así los tests no necesitan MongoDB.
"""
import os
import tempfile

# Antes de importar la app: la configuración se lee al importar lawnconnect.config
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PAYMENT_DELAY_SECONDS"] = "0"
os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="lawnconnect-media-"))

from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from lawnconnect.errors import AppError, ErrorKind
from lawnconnect.repositories.bookings import get_booking_repository
from lawnconnect.repositories.users import get_user_repository
from lawnconnect.schemas.user import Role
from lawnconnect.services.email import get_email_service
from lawnconnect.services.storage import MediaStorage, get_media_storage


class InMemoryBookingRepository:
    """Mismo contrato que BookingRepository, sobre un dict."""

    def __init__(self):
        self.docs: Dict[ObjectId, Dict[str, Any]] = {}

    async def create(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(doc)
        stored["_id"] = ObjectId()
        self.docs[stored["_id"]] = stored
        return dict(stored)

    async def get(self, booking_id: ObjectId) -> Optional[Dict[str, Any]]:
        doc = self.docs.get(booking_id)
        return dict(doc) if doc else None

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return [
            dict(d) for d in self.docs.values()
            if d.get("customer_id") == user_id or d.get("mower_id") == user_id
        ]

    async def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        return [dict(d) for d in self.docs.values() if d.get("status") == status]

    async def transition(self, booking_id, expected, changes):
        doc = self.docs.get(booking_id)
        if doc is None:
            return None
        for field, value in expected.items():
            current = doc.get(field)
            if isinstance(value, (list, tuple, set, frozenset)):
                if current not in value:
                    return None
            elif current != value:
                return None
        doc.update(changes)
        return dict(doc)


class InMemoryUserRepository:
    def __init__(self):
        self.docs: Dict[ObjectId, Dict[str, Any]] = {}

    async def create(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        if any(d["email"] == doc["email"] for d in self.docs.values()):
            raise AppError(ErrorKind.duplicate, "Ya existe un usuario con este email")
        stored = dict(doc)
        stored["_id"] = ObjectId()
        self.docs[stored["_id"]] = stored
        return dict(stored)

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for d in self.docs.values():
            if d["email"] == email:
                return dict(d)
        return None

    async def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(user_id):
            return None
        doc = self.docs.get(ObjectId(user_id))
        return dict(doc) if doc else None

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[Dict[str, Any]]:
        for d in self.docs.values():
            if token_hash and d.get("reset_token_hash") == token_hash:
                return dict(d)
        return None

    async def update(self, user_id: ObjectId, changes: Dict[str, Any]) -> None:
        if user_id in self.docs:
            self.docs[user_id].update(changes)


class RecordingEmailService:
    """Guarda los emails en memoria; con fail=True simula un SMTP caído."""

    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send(self, to, subject, template_name, context=None):
        if self.fail:
            raise ConnectionError("SMTP no disponible")
        self.sent.append({"to": to, "subject": subject, "template": template_name, "context": context or {}})


@pytest.fixture
def booking_repo():
    return InMemoryBookingRepository()

@pytest.fixture
def user_repo():
    return InMemoryUserRepository()

@pytest.fixture
def email_service():
    return RecordingEmailService()

@pytest.fixture
def media_storage(tmp_path):
    return MediaStorage(tmp_path)

@pytest.fixture
def app(booking_repo, user_repo, email_service, media_storage):
    from lawnconnect.main import app
    # Deshabilitar rate limiting en tests
    app.state.limiter = None
    app.dependency_overrides[get_booking_repository] = lambda: booking_repo
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_media_storage] = lambda: media_storage
    yield app
    app.dependency_overrides.clear()

@pytest.fixture
def client(app):
    """Fixture para cliente de test de FastAPI"""
    return TestClient(app)

@pytest.fixture
def auth_headers(app):
    """Devuelve una función que crea cabeceras Bearer para un rol (y un id opcional)."""
    def _make(role: Role, user_id: Optional[str] = None):
        user_id = user_id or str(ObjectId())
        token = app.state.token_issuer.issue(user_id, role)
        return user_id, {"Authorization": f"Bearer {token}"}
    return _make

@pytest.fixture
def booking_payload():
    return {
        "date": "2024-05-01",
        "time": "10:00",
        "address": "1 Main St",
        "description": "Césped delantero y trasero",
    }
