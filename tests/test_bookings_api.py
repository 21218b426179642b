"""
Tests para los endpoints de reservas
"""
import pytest
from bson import ObjectId
from fastapi import status
from httpx import AsyncClient, ASGITransport

from lawnconnect.schemas.user import Role

BOOKINGS = "/api/v1/bookings"


def _create(client, headers, payload):
    r = client.post(BOOKINGS, json=payload, headers=headers)
    assert r.status_code == status.HTTP_201_CREATED, r.text
    return r.json()["data"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_create_booking_as_customer(client, auth_headers, booking_payload):
    customer_id, headers = auth_headers(Role.customer)
    r = client.post(BOOKINGS, json=booking_payload, headers=headers)
    assert r.status_code == status.HTTP_201_CREATED
    body = r.json()
    assert body["success"] is True
    booking = body["data"]
    assert booking["status"] == "pending"
    assert booking["customer_id"] == customer_id
    assert booking["mower_id"] is None
    assert booking["price"] == 0
    assert booking["billing_status"] == "pending"
    assert booking["address"] == "1 Main St"


def test_create_booking_as_mower_is_forbidden(client, auth_headers, booking_payload):
    _, headers = auth_headers(Role.mower)
    r = client.post(BOOKINGS, json=booking_payload, headers=headers)
    assert r.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.parametrize("changes", [
    {"date": "01/05/2024"},
    {"time": "10am"},
    {"date": "2024-13-45"},
    {"date": "2023-02-29"},
    {"time": "99:99"},
    {"time": "24:00"},
    {"address": ""},
])
def test_create_booking_invalid_payload(client, auth_headers, booking_payload, changes):
    _, headers = auth_headers(Role.customer)
    r = client.post(BOOKINGS, json={**booking_payload, **changes}, headers=headers)
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["success"] is False


def test_create_booking_missing_field(client, auth_headers, booking_payload):
    _, headers = auth_headers(Role.customer)
    payload = dict(booking_payload)
    payload.pop("address")
    r = client.post(BOOKINGS, json=payload, headers=headers)
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_get_booking_not_found_and_invalid_id(client, auth_headers):
    _, headers = auth_headers(Role.customer)
    r = client.get(f"{BOOKINGS}/{ObjectId()}", headers=headers)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json()["error"]["kind"] == "not_found"
    r = client.get(f"{BOOKINGS}/not-an-id", headers=headers)
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_get_booking_of_other_customer_is_forbidden(client, auth_headers, booking_payload):
    _, owner = auth_headers(Role.customer)
    _, stranger = auth_headers(Role.customer)
    booking = _create(client, owner, booking_payload)
    assert client.get(f"{BOOKINGS}/{booking['id']}", headers=owner).status_code == 200
    assert client.get(f"{BOOKINGS}/{booking['id']}", headers=stranger).status_code == 403


def test_booking_flow(client, auth_headers, booking_payload):
    customer_id, customer = auth_headers(Role.customer)
    mower_a_id, mower_a = auth_headers(Role.mower)
    _, mower_b = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    booking_id = booking["id"]

    pending = client.get(f"{BOOKINGS}/pending", headers=mower_b).json()["data"]
    assert [b["id"] for b in pending] == [booking_id]

    r = client.put(f"{BOOKINGS}/{booking_id}/accept", headers=mower_a)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "accepted"
    assert r.json()["data"]["mower_id"] == mower_a_id

    r = client.put(f"{BOOKINGS}/{booking_id}/accept", headers=mower_b)
    assert r.status_code == status.HTTP_409_CONFLICT
    assert r.json()["error"]["kind"] == "conflict"

    assert client.get(f"{BOOKINGS}/pending", headers=mower_b).json()["data"] == []

    r = client.put(f"{BOOKINGS}/{booking_id}/complete", json={"price": 0}, headers=mower_a)
    assert r.status_code == status.HTTP_400_BAD_REQUEST

    r = client.put(f"{BOOKINGS}/{booking_id}/complete", json={"price": 50.0, "comment": "Todo listo"}, headers=mower_a)
    assert r.status_code == 200
    done = r.json()["data"]
    assert done["status"] == "completed"
    assert done["billing_status"] == "paid"
    assert done["price"] == 50.0
    assert done["completion_comment"] == "Todo listo"

    r = client.put(f"{BOOKINGS}/{booking_id}/cancel", headers=customer)
    assert r.status_code == status.HTTP_409_CONFLICT
    assert r.json()["error"]["kind"] == "invalid_state"

    mine = client.get(BOOKINGS, headers=customer).json()["data"]
    assert [b["id"] for b in mine] == [booking_id]
    assigned = client.get(BOOKINGS, headers=mower_a).json()["data"]
    assert [b["id"] for b in assigned] == [booking_id]
    assert client.get(BOOKINGS, headers=mower_b).json()["data"] == []


def test_complete_pending_booking_is_conflict(client, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    r = client.put(f"{BOOKINGS}/{booking['id']}/complete", json={"price": 20}, headers=mower)
    assert r.status_code == status.HTTP_409_CONFLICT


@pytest.mark.parametrize("raw", [b'{"price": Infinity}', b'{"price": NaN}', b'{"price": -Infinity}'])
def test_complete_with_non_finite_price(client, auth_headers, booking_payload, raw):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    client.put(f"{BOOKINGS}/{booking['id']}/accept", headers=mower)

    r = client.put(
        f"{BOOKINGS}/{booking['id']}/complete",
        content=raw,
        headers={**mower, "Content-Type": "application/json"},
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["error"]["kind"] == "invalid_input"

    # La reserva sigue intacta y se puede listar
    r = client.get(f"{BOOKINGS}/{booking['id']}", headers=customer)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "accepted"
    assert r.json()["data"]["billing_status"] == "pending"
    assert client.get(BOOKINGS, headers=customer).status_code == 200


def test_complete_without_price_is_invalid(client, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    client.put(f"{BOOKINGS}/{booking['id']}/accept", headers=mower)
    r = client.put(f"{BOOKINGS}/{booking['id']}/complete", json={"price": "mucho"}, headers=mower)
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_reject_with_reason(client, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    r = client.put(f"{BOOKINGS}/{booking['id']}/reject", json={"reason": "Demasiado lejos"}, headers=mower)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "rejected"
    assert data["rejection_reason"] == "Demasiado lejos"


def test_reject_without_body(client, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    r = client.put(f"{BOOKINGS}/{booking['id']}/reject", headers=mower)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"


def test_cancel_by_other_customer_is_forbidden(client, auth_headers, booking_payload):
    _, owner = auth_headers(Role.customer)
    _, stranger = auth_headers(Role.customer)
    booking = _create(client, owner, booking_payload)
    r = client.put(f"{BOOKINGS}/{booking['id']}/cancel", headers=stranger)
    assert r.status_code == status.HTTP_403_FORBIDDEN
    r = client.put(f"{BOOKINGS}/{booking['id']}/cancel", headers=owner)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "cancelled"


def test_mower_cannot_cancel(client, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    r = client.put(f"{BOOKINGS}/{booking['id']}/cancel", headers=mower)
    assert r.status_code == status.HTTP_403_FORBIDDEN


def test_upload_proof_of_completion(client, auth_headers, booking_payload, media_storage):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    _, other_mower = auth_headers(Role.mower)
    booking = _create(client, customer, booking_payload)
    url = f"{BOOKINGS}/{booking['id']}/proof"
    files = {"file": ("jardin.png", b"\x89PNG fake", "image/png")}

    # Aún sin asignar: nadie puede subir la prueba
    assert client.post(url, files=files, headers=mower).status_code == status.HTTP_403_FORBIDDEN

    client.put(f"{BOOKINGS}/{booking['id']}/accept", headers=mower)
    assert client.post(url, files=files, headers=other_mower).status_code == status.HTTP_403_FORBIDDEN

    r = client.post(url, files={"file": ("notas.txt", b"hola", "text/plain")}, headers=mower)
    assert r.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE

    r = client.post(url, files=files, headers=mower)
    assert r.status_code == 200
    proof_url = r.json()["data"]["proof_of_completion_url"]
    assert proof_url.startswith("/media/proofs/") and proof_url.endswith(".png")
    saved = media_storage.media_dir / proof_url.removeprefix("/media/")
    assert saved.read_bytes() == b"\x89PNG fake"


def test_unknown_route_uses_envelope(client):
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_booking_status_flow_async(app, auth_headers, booking_payload):
    _, customer = auth_headers(Role.customer)
    _, mower = auth_headers(Role.mower)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.post(BOOKINGS, json=booking_payload, headers=customer)
        booking_id = r.json()["data"]["id"]

        r = await ac.put(f"{BOOKINGS}/{booking_id}/accept", headers=mower)
        assert r.status_code == 200 and r.json()["data"]["status"] == "accepted"

        r = await ac.put(f"{BOOKINGS}/{booking_id}/complete", json={"price": 35.5}, headers=mower)
        assert r.status_code == 200 and r.json()["data"]["status"] == "completed"

        r = await ac.get(f"{BOOKINGS}/{booking_id}", headers=customer)
        assert r.json()["data"]["billing_status"] == "paid"


def test_register_login_and_book(client, booking_payload):
    """Flujo completo con usuarios reales: registro, login y reserva"""
    client.post("/api/v1/auth/register", json={
        "name": "Cliente", "email": "cliente@example.com", "password": "password123", "role": "customer",
    })
    login = client.post("/api/v1/auth/login", json={"email": "cliente@example.com", "password": "password123"})
    data = login.json()["data"]
    headers = {"Authorization": f"Bearer {data['token']}"}

    booking = _create(client, headers, booking_payload)
    assert booking["customer_id"] == data["user"]["id"]
