"""
Projection of user records onto the configured safe field list.
"""
from typing import Any, Iterable, Optional, Union

from account_gateway.core.errors import ConfigurationError

# Never allowed in a response, whatever the configuration says
SENSITIVE_FIELDS = frozenset({
    "password",
    "password_hash",
    "code",
    "code_issued_at",
    "verification_code",
    "verification_issued_at",
})


def parse_safe_fields(safe_user_fields: Union[str, Iterable[str]]) -> tuple[str, ...]:
    """
    Normalize the ``safe_user_fields`` setting into a tuple of field names.

    Raises:
        ConfigurationError: If the list is empty or names a sensitive field
    """
    if isinstance(safe_user_fields, str):
        fields = tuple(safe_user_fields.split())
    else:
        fields = tuple(safe_user_fields)

    if not fields:
        raise ConfigurationError("safe_user_fields must name at least one field")
    leaked = SENSITIVE_FIELDS.intersection(fields)
    if leaked:
        raise ConfigurationError(
            f"safe_user_fields must not include sensitive fields: {', '.join(sorted(leaked))}"
        )
    return fields


def redact(user: Optional[dict[str, Any]], fields: tuple[str, ...]) -> dict[str, Any]:
    """Keep only the allow-listed keys that are present on the record."""
    if not user:
        return {}
    return {key: user[key] for key in fields if user.get(key) is not None}


def redact_all(users: Iterable[dict[str, Any]], fields: tuple[str, ...]) -> list[dict[str, Any]]:
    return [redact(user, fields) for user in users]
