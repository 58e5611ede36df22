import os
from typing import List, Optional
from urllib.parse import quote_plus
from motor.motor_asyncio import AsyncIOMotorClient

from core.logger import Logger
logger = Logger(__name__)

MONGO_USER = os.getenv("MONGO_USER", "")
MONGO_PASSWORD = os.getenv("MONGO_PASSWORD", "")
MONGO_HOST = os.getenv("MONGO_HOST", "")
MONGO_PORT = os.getenv("MONGO_PORT", "")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "")

class MongoDBClient:
    def __init__(self):
        MONGO_URI = f"mongodb://{quote_plus(MONGO_USER)}:{quote_plus(MONGO_PASSWORD)}@{MONGO_HOST}:{MONGO_PORT}/{MONGO_DB_NAME}?authSource={MONGO_DB_NAME}"
        self.client = AsyncIOMotorClient(MONGO_URI)
        self.db = self.client[MONGO_DB_NAME]
        logger.info("MongoDB client initialized (async).")

    async def init(self):
        """Initialize async connection and verify database access."""
        try:
            await self.client.admin.command('ping')
            logger.info("MongoDB connection established successfully.")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    def get_collection(self, name: str):
        return self.db[name]

    async def find_many(self, collection_name: str, query: dict, projection: Optional[dict] = None) -> List[dict]:
        """Return every document matching the query."""
        collection = self.get_collection(collection_name)
        return await collection.find(query, projection).to_list(length=None)

    async def ensure_ttl_index(self, collection_name: str, field: str):
        """Expire documents at the datetime stored in `field`."""
        collection = self.get_collection(collection_name)
        await collection.create_index(field, expireAfterSeconds=0)
        logger.debug(f"TTL index ensured on {collection_name}.{field}")
