"""
Database connection management for MongoDB.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from account_gateway.config import Settings


def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    """Create a MongoDB client for the configured store URL."""
    return AsyncIOMotorClient(settings.mongo_uri)


def get_users_collection(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorCollection:
    """Get the collection holding user records."""
    return client[settings.users_db][settings.users_collection]
