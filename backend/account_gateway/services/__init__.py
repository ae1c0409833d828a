"""
Service layer for account workflows and email.
"""
from account_gateway.services.account_service import AccountService
from account_gateway.services.email_service import Mailer, SMTPTransport

__all__ = [
    "AccountService",
    "Mailer",
    "SMTPTransport",
]
