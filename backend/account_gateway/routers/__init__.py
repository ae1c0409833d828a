"""
API Routers module.
"""
from account_gateway.routers import health, users

__all__ = ["health", "users"]
