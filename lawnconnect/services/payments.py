import asyncio
import logging
import uuid

logger = logging.getLogger(__name__)


class PaymentSimulator:
    """
    Pasarela de pago simulada: espera un tiempo fijo y devuelve un id de transacción.
    Sin reintentos. Si la tarea que espera se cancela, el cobro no se completa.
    """

    def __init__(self, delay_seconds: float = 2.0):
        self.delay_seconds = max(0.0, delay_seconds)

    async def charge(self, booking_id: str, amount: float) -> str:
        logger.info(f"Procesando pago simulado de {amount:.2f} para la reserva {booking_id}")
        await asyncio.sleep(self.delay_seconds)
        transaction_id = f"mock_txn_{uuid.uuid4().hex[:16]}"
        logger.info(f"Pago simulado completado: {transaction_id}")
        return transaction_id
