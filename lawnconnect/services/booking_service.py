"""
Ciclo de vida de las reservas.

    pending  -> accepted | rejected | cancelled
    accepted -> completed | cancelled
    completed, cancelled, rejected: finales

Cada transición se escribe con una actualización condicional sobre el estado
esperado, así que una transición fallida nunca modifica el documento y dos
mowers aceptando a la vez no pueden quedar ambos asignados.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import math

from fastapi import Depends

from ..config import get_settings
from ..errors import AppError, ErrorKind
from ..repositories.bookings import BookingRepository, get_booking_repository
from ..repositories.users import UserRepository, get_user_repository
from ..schemas.booking import BookingStatus, BillingStatus
from ..schemas.user import Role
from ..security import Principal
from ..utils import to_object_id
from .email import EmailService, get_email_service
from .notifications import BookingNotifier
from .payments import PaymentSimulator

logger = logging.getLogger(__name__)

ALLOWED: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.pending: {BookingStatus.accepted, BookingStatus.rejected, BookingStatus.cancelled},
    BookingStatus.accepted: {BookingStatus.completed, BookingStatus.cancelled},
    BookingStatus.completed: set(),
    BookingStatus.cancelled: set(),
    BookingStatus.rejected: set(),
}


def _status_of(doc: Dict[str, Any]) -> BookingStatus:
    try:
        return BookingStatus(doc.get("status"))
    except ValueError:
        logger.error(f"Reserva {doc.get('_id')} con estado desconocido: {doc.get('status')!r}")
        raise AppError(ErrorKind.internal, "Estado de reserva inválido")


def _ensure_transition(old: BookingStatus, new: BookingStatus) -> None:
    if new not in ALLOWED.get(old, set()):
        raise AppError(
            ErrorKind.invalid_state,
            f"Transición no permitida: {old.value} → {new.value}",
            {"from": old.value, "to": new.value},
        )


class BookingService:
    def __init__(
        self,
        bookings: BookingRepository,
        notifier: Optional[BookingNotifier] = None,
        payments: Optional[PaymentSimulator] = None,
    ):
        self.bookings = bookings
        self.notifier = notifier
        self.payments = payments or PaymentSimulator()

    # ---------- Lecturas ----------

    async def get(self, booking_id: str) -> Dict[str, Any]:
        doc = await self.bookings.get(to_object_id(booking_id, "booking_id"))
        if not doc:
            raise AppError(ErrorKind.not_found, "Reserva no encontrada")
        return doc

    async def get_for(self, booking_id: str, principal: Principal) -> Dict[str, Any]:
        """Como ``get`` pero comprobando que el usuario puede ver la reserva."""
        doc = await self.get(booking_id)
        if principal.role == Role.customer and doc.get("customer_id") == principal.user_id:
            return doc
        if principal.role == Role.mower and (
            doc.get("mower_id") == principal.user_id or doc.get("status") == BookingStatus.pending.value
        ):
            return doc
        raise AppError(ErrorKind.forbidden, "Sin acceso a esta reserva")

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.bookings.list_for_user(user_id)

    async def list_pending(self) -> List[Dict[str, Any]]:
        return await self.bookings.list_by_status(BookingStatus.pending.value)

    # ---------- Creación ----------

    async def create(self, customer_id: str, date: str, time: str, address: str, description: str = "") -> Dict[str, Any]:
        if not date.strip() or not time.strip() or not address.strip():
            raise AppError(ErrorKind.invalid_input, "date, time y address son obligatorios")
        now = datetime.utcnow()
        doc = {
            "customer_id": customer_id,
            "date": date,
            "time": time,
            "address": address.strip(),
            "description": description,
            "status": BookingStatus.pending.value,
            "price": 0.0,
            "billing_status": BillingStatus.pending.value,
            "created_at": now,
            "updated_at": now,
        }
        created = await self.bookings.create(doc)
        logger.info(f"Reserva {created['_id']} creada por el cliente {customer_id}")
        return created

    # ---------- Transiciones ----------

    async def accept(self, booking_id: str, mower_id: str) -> Dict[str, Any]:
        doc = await self.get(booking_id)
        self._ensure_not_taken(doc, mower_id)
        old = _status_of(doc)
        if old == BookingStatus.accepted and doc.get("mower_id") == mower_id:
            # Mismo mower aceptando otra vez: no hay nada que cambiar
            return doc
        _ensure_transition(old, BookingStatus.accepted)

        now = datetime.utcnow()
        updated = await self.bookings.transition(
            doc["_id"],
            {"status": BookingStatus.pending.value, "mower_id": None},
            {
                "status": BookingStatus.accepted.value,
                "mower_id": mower_id,
                "accepted_time": now,
                "updated_at": now,
            },
        )
        if updated is None:
            # Otro request cambió la reserva entre la lectura y la escritura
            current = await self.get(booking_id)
            self._ensure_not_taken(current, mower_id)
            if current.get("mower_id") == mower_id:
                return current
            _ensure_transition(_status_of(current), BookingStatus.accepted)
            raise AppError(ErrorKind.conflict, "La reserva ha cambiado, inténtalo de nuevo")

        logger.info(f"Reserva {booking_id} aceptada por el mower {mower_id}")
        await self._notify(updated, BookingStatus.accepted)
        return updated

    async def reject(self, booking_id: str, mower_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        doc = await self.get(booking_id)
        self._ensure_not_taken(doc, mower_id)
        _ensure_transition(_status_of(doc), BookingStatus.rejected)

        changes: Dict[str, Any] = {
            "status": BookingStatus.rejected.value,
            "updated_at": datetime.utcnow(),
        }
        if reason:
            changes["rejection_reason"] = reason
        updated = await self.bookings.transition(
            doc["_id"],
            {"status": BookingStatus.pending.value, "mower_id": doc.get("mower_id")},
            changes,
        )
        if updated is None:
            current = await self.get(booking_id)
            self._ensure_not_taken(current, mower_id)
            _ensure_transition(_status_of(current), BookingStatus.rejected)
            raise AppError(ErrorKind.conflict, "La reserva ha cambiado, inténtalo de nuevo")

        logger.info(f"Reserva {booking_id} rechazada por el mower {mower_id}")
        await self._notify(updated, BookingStatus.rejected)
        return updated

    async def complete(
        self,
        booking_id: str,
        mower_id: str,
        price: float,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        # NaN e infinito no se pueden devolver en JSON
        if price is None or not math.isfinite(price) or price <= 0:
            raise AppError(ErrorKind.invalid_input, "El precio debe ser un número positivo y finito")

        doc = await self.get(booking_id)
        _ensure_transition(_status_of(doc), BookingStatus.completed)
        if doc.get("mower_id") != mower_id:
            raise AppError(ErrorKind.forbidden, "Solo el mower asignado puede completar la reserva")

        transaction_id = await self.payments.charge(booking_id, price)

        now = datetime.utcnow()
        changes: Dict[str, Any] = {
            "status": BookingStatus.completed.value,
            "price": float(price),
            "billing_status": BillingStatus.paid.value,
            "transaction_id": transaction_id,
            "completed_time": now,
            "updated_at": now,
        }
        if comment:
            changes["completion_comment"] = comment
        updated = await self.bookings.transition(
            doc["_id"],
            {"status": BookingStatus.accepted.value, "mower_id": mower_id},
            changes,
        )
        if updated is None:
            # La reserva cambió (p. ej. cancelada) mientras se procesaba el pago
            logger.warning(f"Reserva {booking_id} modificada durante el pago {transaction_id}; no se completa")
            current = await self.get(booking_id)
            _ensure_transition(_status_of(current), BookingStatus.completed)
            raise AppError(ErrorKind.conflict, "La reserva ha cambiado, inténtalo de nuevo")

        logger.info(f"Reserva {booking_id} completada por {mower_id} con precio {price:.2f}")
        await self._notify(updated, BookingStatus.completed)
        return updated

    async def cancel(self, booking_id: str, customer_id: str) -> Dict[str, Any]:
        doc = await self.get(booking_id)
        if doc.get("customer_id") != customer_id:
            raise AppError(ErrorKind.forbidden, "No tienes permiso para cancelar esta reserva")
        _ensure_transition(_status_of(doc), BookingStatus.cancelled)

        updated = await self.bookings.transition(
            doc["_id"],
            {
                "customer_id": customer_id,
                "status": [BookingStatus.pending.value, BookingStatus.accepted.value],
            },
            {"status": BookingStatus.cancelled.value, "updated_at": datetime.utcnow()},
        )
        if updated is None:
            current = await self.get(booking_id)
            _ensure_transition(_status_of(current), BookingStatus.cancelled)
            raise AppError(ErrorKind.conflict, "La reserva ha cambiado, inténtalo de nuevo")

        logger.info(f"Reserva {booking_id} cancelada por el cliente {customer_id}")
        await self._notify(updated, BookingStatus.cancelled)
        return updated

    async def ensure_can_attach_proof(self, booking_id: str, mower_id: str) -> Dict[str, Any]:
        doc = await self.get(booking_id)
        if doc.get("mower_id") != mower_id:
            raise AppError(ErrorKind.forbidden, "Solo el mower asignado puede subir la prueba")
        status = _status_of(doc)
        if status not in {BookingStatus.accepted, BookingStatus.completed}:
            raise AppError(ErrorKind.invalid_state, f"No se puede adjuntar una prueba en estado {status.value}")
        return doc

    async def attach_proof(self, booking_id: str, mower_id: str, url: str) -> Dict[str, Any]:
        doc = await self.ensure_can_attach_proof(booking_id, mower_id)
        updated = await self.bookings.transition(
            doc["_id"],
            {"mower_id": mower_id, "status": [BookingStatus.accepted.value, BookingStatus.completed.value]},
            {"proof_of_completion_url": url, "updated_at": datetime.utcnow()},
        )
        if updated is None:
            raise AppError(ErrorKind.conflict, "La reserva ha cambiado, inténtalo de nuevo")
        return updated

    # ---------- Helpers ----------

    @staticmethod
    def _ensure_not_taken(doc: Dict[str, Any], mower_id: str) -> None:
        assigned = doc.get("mower_id")
        if assigned and assigned != mower_id:
            raise AppError(ErrorKind.conflict, "Esta reserva ya ha sido aceptada por otro mower")

    async def _notify(self, booking: Dict[str, Any], status: BookingStatus) -> None:
        if self.notifier is not None:
            await self.notifier.booking_changed(booking, status)


async def get_booking_service(
    bookings: BookingRepository = Depends(get_booking_repository),
    users: UserRepository = Depends(get_user_repository),
    email: EmailService = Depends(get_email_service),
) -> BookingService:
    settings = get_settings()
    return BookingService(
        bookings,
        notifier=BookingNotifier(email, users),
        payments=PaymentSimulator(settings.payment_delay_seconds),
    )
