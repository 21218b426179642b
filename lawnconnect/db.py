from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from .config import get_settings

_settings = get_settings()
_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(_settings.mongodb_uri)
        _db = _client[_settings.db_name]
        # Índices usados por los repositorios
        await _db.users.create_index("email", unique=True)
        await _db.users.create_index("reset_token_hash", sparse=True)
        await _db.bookings.create_index([("customer_id", 1)])
        await _db.bookings.create_index([("mower_id", 1)])
        await _db.bookings.create_index([("status", 1), ("created_at", 1)])
    return _db
