# lawnconnect/routers/bookings.py
from fastapi import APIRouter, Depends, status, Path, UploadFile, File
from typing import Optional
import logging

from ..responses import json_success
from ..schemas.booking import BookingCreate, BookingOut, CompleteBody, RejectBody
from ..schemas.user import Role
from ..security import Principal, require_roles
from ..services.booking_service import BookingService, get_booking_service
from ..services.storage import MediaStorage, get_media_storage
from ..utils import to_id

logger = logging.getLogger(__name__)

router = APIRouter()

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"

customer_only = require_roles(Role.customer)
mower_only = require_roles(Role.mower)
participant = require_roles(Role.customer, Role.mower)


def _to_out(doc: dict) -> BookingOut:
    return BookingOut.model_validate(to_id(doc))

# ---------- Lecturas ----------

@router.get("")
async def list_my_bookings(
    current: Principal = Depends(participant),
    bookings: BookingService = Depends(get_booking_service),
):
    docs = await bookings.list_for_user(current.user_id)
    return json_success("Reservas obtenidas correctamente", [_to_out(d) for d in docs])

@router.get("/pending")
async def list_pending_bookings(
    current: Principal = Depends(mower_only),
    bookings: BookingService = Depends(get_booking_service),
):
    docs = await bookings.list_pending()
    return json_success("Reservas pendientes obtenidas correctamente", [_to_out(d) for d in docs])

@router.get("/{booking_id}")
async def get_booking(
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    current: Principal = Depends(participant),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.get_for(booking_id, current)
    return json_success("Reserva obtenida correctamente", _to_out(doc))

# ---------- Cliente ----------

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current: Principal = Depends(customer_only),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.create(current.user_id, payload.date, payload.time, payload.address, payload.description)
    return json_success("Reserva creada correctamente", _to_out(doc), status.HTTP_201_CREATED)

@router.put("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    current: Principal = Depends(customer_only),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.cancel(booking_id, current.user_id)
    return json_success("Reserva cancelada correctamente", _to_out(doc))

# ---------- Mower ----------

@router.put("/{booking_id}/accept")
async def accept_booking(
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    current: Principal = Depends(mower_only),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.accept(booking_id, current.user_id)
    return json_success("Reserva aceptada correctamente", _to_out(doc))

@router.put("/{booking_id}/reject")
async def reject_booking(
    body: Optional[RejectBody] = None,
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    current: Principal = Depends(mower_only),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.reject(booking_id, current.user_id, body.reason if body else None)
    return json_success("Reserva rechazada correctamente", _to_out(doc))

@router.put("/{booking_id}/complete")
async def complete_booking(
    body: CompleteBody,
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    current: Principal = Depends(mower_only),
    bookings: BookingService = Depends(get_booking_service),
):
    doc = await bookings.complete(booking_id, current.user_id, body.price, body.comment)
    return json_success("Reserva completada y pago simulado correctamente", _to_out(doc))

@router.post("/{booking_id}/proof")
async def upload_proof(
    booking_id: str = Path(..., pattern=OBJECT_ID_PATTERN),
    file: UploadFile = File(...),
    current: Principal = Depends(mower_only),
    bookings: BookingService = Depends(get_booking_service),
    storage: MediaStorage = Depends(get_media_storage),
):
    # Se valida antes de guardar el fichero para no dejar huérfanos
    await bookings.ensure_can_attach_proof(booking_id, current.user_id)
    url = await storage.save_image(file, "proofs")
    doc = await bookings.attach_proof(booking_id, current.user_id, url)
    return json_success("Prueba de finalización guardada", _to_out(doc))
