from typing import Any, Dict, Optional
import logging

from .email import EmailService
from ..repositories.users import UserRepository
from ..schemas.booking import BookingStatus

logger = logging.getLogger(__name__)

HEADLINES: Dict[BookingStatus, tuple[str, str]] = {
    BookingStatus.accepted: ("Tu reserva ha sido aceptada", "Un profesional ha aceptado tu reserva."),
    BookingStatus.rejected: ("Tu reserva ha sido rechazada", "Tu reserva ha sido rechazada."),
    BookingStatus.completed: ("Servicio completado", "El servicio se ha completado y el pago se ha procesado."),
    BookingStatus.cancelled: ("Reserva cancelada", "El cliente ha cancelado la reserva."),
}


class BookingNotifier:
    """
    Avisa por email a la otra parte de una reserva tras cada transición.
    Los fallos se registran y nunca se propagan: la transición ya está guardada.
    """

    def __init__(self, email: EmailService, users: UserRepository):
        self.email = email
        self.users = users

    def _recipient_id(self, booking: Dict[str, Any], status: BookingStatus) -> Optional[str]:
        if status == BookingStatus.cancelled:
            return booking.get("mower_id")
        return booking.get("customer_id")

    async def booking_changed(self, booking: Dict[str, Any], status: BookingStatus) -> None:
        booking_id = str(booking.get("_id"))
        try:
            if status not in HEADLINES:
                return
            recipient_id = self._recipient_id(booking, status)
            if not recipient_id:
                return
            user = await self.users.get_by_id(recipient_id)
            if not user or not user.get("email"):
                logger.warning(f"Sin destinatario para la notificación de la reserva {booking_id}")
                return
            subject, headline = HEADLINES[status]
            details = ""
            if status == BookingStatus.completed:
                details = f"Importe: {booking.get('price', 0):.2f}"
            elif status == BookingStatus.rejected and booking.get("rejection_reason"):
                details = f"Motivo: {booking['rejection_reason']}"
            await self.email.send(user["email"], subject, "booking-status.html", {
                "name": user.get("name", ""),
                "headline": headline,
                "date": booking.get("date", ""),
                "time": booking.get("time", ""),
                "address": booking.get("address", ""),
                "status": status.value,
                "details": details,
            })
        except Exception as e:
            logger.warning(f"No se pudo notificar la reserva {booking_id} ({status.value}): {e}", exc_info=True)
