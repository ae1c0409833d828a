"""
Account Gateway - FastAPI Application

User registration, signin, password reset, email verification and profile
management on top of a MongoDB user store.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from motor.motor_asyncio import AsyncIOMotorClient

from account_gateway.config import Settings, get_settings
from account_gateway.core.log_config import configure_logging
from account_gateway.database.connections import create_mongo_client, get_users_collection
from account_gateway.database.store import UserStore
from account_gateway.gateway import mount_gateway
from account_gateway.hooks import GatewayHooks
from account_gateway.routers import health
from account_gateway.services.email_service import Transport

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    hooks: Optional[GatewayHooks] = None,
    mongo_client: Optional[AsyncIOMotorClient] = None,
    transport: Optional[Transport] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings, defaults to the environment
        hooks: Override hooks
        mongo_client: Client to use instead of connecting to ``mongo_uri``
        transport: Mail transport to use instead of SMTP
    """
    settings = settings or get_settings()
    client = mongo_client or create_mongo_client(settings)
    store = UserStore(
        get_users_collection(client, settings),
        secret=settings.store_secret,
        admins=settings.store_admins,
        session_minutes=settings.store_session_minutes,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup:
        - Configure logging
        - Create user store indexes

        Shutdown:
        - Close the MongoDB client
        """
        configure_logging(settings.log_level)
        logger.info("Starting up Account Gateway...")

        try:
            await store.ensure_indexes()
            logger.info("User store indexes created")
        except Exception as e:
            logger.warning("Database initialization warning: %s", e)

        yield

        logger.info("Shutting down Account Gateway...")
        client.close()

    app = FastAPI(
        title="Account Gateway API",
        description="""
## User Account Gateway

Registration, authentication and profile management backed by MongoDB.

### Features
- **Signup / Signin**: cookie sessions with optional email verification
- **Password reset**: single-use codes delivered by email
- **Profiles**: read, update and delete users with admin role checks
        """,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    mount_gateway(app, store, settings=settings, hooks=hooks, transport=transport)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Account Gateway API",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
