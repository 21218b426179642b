from typing import Any, Dict, Optional
import logging

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..db import get_db
from ..errors import AppError, ErrorKind

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.users

    async def create(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            # Carrera entre dos registros con el mismo email: lo resuelve el índice único
            raise AppError(ErrorKind.duplicate, "Ya existe un usuario con este email")
        except PyMongoError as e:
            logger.error(f"Error al crear usuario: {e}", exc_info=True)
            raise AppError(ErrorKind.internal, "No se pudo crear el usuario")
        return await self.collection.find_one({"_id": res.inserted_id})

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"email": email})
        except PyMongoError as e:
            logger.error(f"Error al buscar usuario por email: {e}", exc_info=True)
            raise AppError(ErrorKind.internal, "No se pudo obtener el usuario")

    async def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(user_id):
            return None
        try:
            return await self.collection.find_one({"_id": ObjectId(user_id)})
        except PyMongoError as e:
            logger.error(f"Error al buscar usuario por id: {e}", exc_info=True)
            raise AppError(ErrorKind.internal, "No se pudo obtener el usuario")

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"reset_token_hash": token_hash})
        except PyMongoError as e:
            logger.error(f"Error al buscar token de reseteo: {e}", exc_info=True)
            raise AppError(ErrorKind.internal, "No se pudo obtener el usuario")

    async def update(self, user_id: ObjectId, changes: Dict[str, Any]) -> None:
        try:
            await self.collection.update_one({"_id": user_id}, {"$set": changes})
        except PyMongoError as e:
            logger.error(f"Error al actualizar usuario {user_id}: {e}", exc_info=True)
            raise AppError(ErrorKind.internal, "No se pudo actualizar el usuario")


async def get_user_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> UserRepository:
    return UserRepository(db)
