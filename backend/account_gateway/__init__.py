"""
Pluggable user account gateway for FastAPI applications.
"""
from account_gateway.config import Settings, get_settings
from account_gateway.context import GatewayContext
from account_gateway.database.store import UserStore
from account_gateway.gateway import mount_gateway
from account_gateway.hooks import GatewayHooks, ValidationInput

__all__ = [
    "Settings",
    "get_settings",
    "GatewayContext",
    "UserStore",
    "mount_gateway",
    "GatewayHooks",
    "ValidationInput",
]
