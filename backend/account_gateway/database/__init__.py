"""
Database module - MongoDB connection and the user document store.
"""
from account_gateway.database.connections import create_mongo_client, get_users_collection
from account_gateway.database.store import AuthResult, UserStore, user_doc_id

__all__ = [
    "create_mongo_client",
    "get_users_collection",
    "AuthResult",
    "UserStore",
    "user_doc_id",
]
