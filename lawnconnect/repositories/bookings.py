"""
Acceso a la colección ``bookings``.

Los servicios no construyen consultas Mongo: usan estos métodos. ``transition``
es la única escritura sobre reservas existentes y solo aplica el cambio si el
documento sigue cumpliendo las condiciones esperadas (actualización condicional
de un solo documento).
"""
from typing import Any, Dict, List, Optional
import logging

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..db import get_db
from ..errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

# Límite de documentos por listado
MAX_LIST = 500


def _store_error(action: str, e: Exception) -> AppError:
    logger.error(f"Error de base de datos al {action}: {e}", exc_info=True)
    return AppError(ErrorKind.internal, f"No se pudo {action}")


class BookingRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.bookings

    async def create(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = await self.collection.insert_one(doc)
            return await self.collection.find_one({"_id": res.inserted_id})
        except PyMongoError as e:
            raise _store_error("crear la reserva", e)

    async def get(self, booking_id: ObjectId) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"_id": booking_id})
        except PyMongoError as e:
            raise _store_error("obtener la reserva", e)

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            return await self.collection.find({
                "$or": [{"customer_id": user_id}, {"mower_id": user_id}]
            }).sort("created_at", 1).to_list(MAX_LIST)
        except PyMongoError as e:
            raise _store_error("listar las reservas", e)

    async def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        try:
            return await self.collection.find({"status": status}).sort("created_at", 1).to_list(MAX_LIST)
        except PyMongoError as e:
            raise _store_error("listar las reservas", e)

    async def transition(
        self,
        booking_id: ObjectId,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Aplica ``changes`` solo si el documento cumple ``expected``.

        En ``expected`` un valor lista significa "uno de", y ``None`` significa
        campo ausente o nulo. Devuelve el documento actualizado o None si las
        condiciones ya no se cumplen.
        """
        query: Dict[str, Any] = {"_id": booking_id}
        for field, value in expected.items():
            query[field] = {"$in": list(value)} if isinstance(value, (list, tuple, set, frozenset)) else value
        try:
            return await self.collection.find_one_and_update(
                query,
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise _store_error("actualizar la reserva", e)


async def get_booking_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingRepository:
    return BookingRepository(db)
