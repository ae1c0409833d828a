"""
Core module - Errors, security, permissions and redaction utilities.
"""
from account_gateway.core.errors import (
    ConfigurationError,
    GatewayError,
    StoreError,
    register_exception_handlers,
)
from account_gateway.core.permissions import (
    AdminPolicy,
    Disabled,
    RoleList,
    SingleRole,
    resolve_admin_policy,
)
from account_gateway.core.redaction import parse_safe_fields, redact, redact_all
from account_gateway.core.security import (
    generate_token,
    hash_password,
    verify_password,
)

__all__ = [
    "ConfigurationError",
    "GatewayError",
    "StoreError",
    "register_exception_handlers",
    "AdminPolicy",
    "Disabled",
    "RoleList",
    "SingleRole",
    "resolve_admin_policy",
    "parse_safe_fields",
    "redact",
    "redact_all",
    "generate_token",
    "hash_password",
    "verify_password",
]
