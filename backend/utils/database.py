"""Store handle wiring"""
import logging
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from utils.config import MONGO_URL, DB_NAME

logger = logging.getLogger(__name__)


def connect(mongo_url: str = MONGO_URL, db_name: str = DB_NAME):
    """Open the process-wide Motor client; returns (client, database)"""
    client = AsyncIOMotorClient(mongo_url)
    return client, client[db_name]


async def ensure_indexes(db) -> None:
    await db.schools.create_index("udise_code", unique=True)
    for field in ("state", "district", "management", "location", "school_type"):
        await db.schools.create_index(field)
    await db.users.create_index("email", unique=True)
    logger.info("MongoDB indexes ensured")


def get_database(request: Request) -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the database bound to the running app"""
    return request.app.state.db
