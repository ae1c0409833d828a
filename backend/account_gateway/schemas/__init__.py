"""
Request schemas for API endpoints.
"""
from account_gateway.schemas.user import (
    ForgotRequest,
    ResetRequest,
    SigninRequest,
    VerifyRequest,
)

__all__ = [
    "ForgotRequest",
    "ResetRequest",
    "SigninRequest",
    "VerifyRequest",
]
