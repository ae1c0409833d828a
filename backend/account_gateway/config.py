"""
Gateway configuration loaded from environment variables.
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional, Union

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, NoDecode

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates" / "email"


class EmailSettings(BaseModel):
    """SMTP transport and template options."""

    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = False
    from_address: str = "no-reply@localhost"
    template_dir: Path = DEFAULT_TEMPLATE_DIR


class AppInfo(BaseModel):
    """Application details rendered into outgoing emails."""

    name: str = "Account Gateway"
    url: str = ""


class Settings(BaseSettings):
    """Gateway settings from environment variables."""

    # MongoDB user store
    mongo_uri: str = "mongodb://mongodb:27017"
    users_db: str = "auth_db"
    users_collection: str = "users"

    # HTTP surface
    api_prefix: str = "/api/user"
    safe_user_fields: Annotated[Union[str, list[str]], NoDecode] = "name email roles"
    admin_roles: Annotated[Union[str, list[str], None], NoDecode] = None
    verify: bool = False

    # Cookie session
    session_secret: str = "CHANGE_ME_IN_PRODUCTION_USE_STRONG_SECRET"
    session_cookie: str = "session"
    session_max_age: int = 14 * 24 * 60 * 60

    # Store authentication
    store_secret: str = "CHANGE_ME_IN_PRODUCTION_USE_STRONG_SECRET"
    store_session_minutes: int = 10
    store_admins: dict[str, str] = {}

    # Reset / verification tokens
    token_ttl_hours: Optional[int] = 24

    email: Optional[EmailSettings] = None
    app: AppInfo = AppInfo()

    log_level: str = "INFO"

    @field_validator("safe_user_fields", "admin_roles", mode="before")
    @classmethod
    def decode_role_list(cls, value):
        """Accept a JSON array from the environment, otherwise keep the raw string."""
        if isinstance(value, str) and value.strip().startswith("["):
            return json.loads(value)
        return value

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
