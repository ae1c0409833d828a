"""
User account request schemas.

Fields are optional so that missing values produce the gateway's own 400
responses rather than FastAPI validation errors.
"""
from typing import Optional

from pydantic import BaseModel, Field


class SigninRequest(BaseModel):
    """Signin request body."""
    name: Optional[str] = Field(None, description="User name")
    password: Optional[str] = Field(None, description="User password")


class ForgotRequest(BaseModel):
    """Forgot-password request body."""
    email: Optional[str] = Field(None, description="Email address of the account")


class ResetRequest(BaseModel):
    """Password reset request body."""
    code: Optional[str] = Field(None, description="Reset code sent by /forgot")
    password: Optional[str] = Field(None, description="New password")


class VerifyRequest(BaseModel):
    """Verification (re)send request body."""
    email: Optional[str] = Field(None, description="Email address to verify")
