"""
User document store backed by a MongoDB collection.

Exposes the primitives the gateway is written against: keyed ``view``
queries, ``get``/``insert``/``destroy`` with optimistic revisions, and
``auth``/``session`` for credential checks. Passwords are hashed by the
store and never leave it in plaintext.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from itsdangerous import BadSignature
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

from account_gateway.core.errors import StoreError
from account_gateway.core.security import (
    AUTH_COOKIE_NAME,
    create_auth_cookie,
    decode_auth_cookie,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

USER_ID_PREFIX = "user:"
USER_TYPE = "user"
ADMIN_ROLE = "_admin"

# view name -> indexed field
VIEWS = {
    "all": "email",
    "code": "code",
    "verification_code": "verification_code",
    "role": "roles",
}


@dataclass
class AuthResult:
    """Outcome of a successful credential check."""

    name: Optional[str]
    roles: list[str] = field(default_factory=list)
    cookie: str = ""

    @property
    def headers(self) -> dict[str, str]:
        return {"set-cookie": f"{AUTH_COOKIE_NAME}={self.cookie}; Path=/; HttpOnly"}


def user_doc_id(name: str) -> str:
    """Document id for a user name."""
    if name.startswith(USER_ID_PREFIX):
        return name
    return USER_ID_PREFIX + name


def _next_rev(rev: Optional[str]) -> str:
    generation = int(rev.split("-", 1)[0]) if rev else 0
    return f"{generation + 1}-{uuid.uuid4().hex}"


def _conflict() -> StoreError:
    return StoreError(409, "conflict", "Document update conflict.")


class UserStore:
    """Document-store client for user records."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        secret: str,
        admins: Optional[dict[str, str]] = None,
        session_minutes: int = 10,
    ):
        """
        Args:
            collection: Collection holding user documents
            secret: Signing secret for auth cookies
            admins: Server administrators, name -> bcrypt hash
            session_minutes: Lifetime of an auth cookie
        """
        self.collection = collection
        self.secret = secret
        self.admins = admins or {}
        self.session_minutes = session_minutes

    async def ensure_indexes(self) -> None:
        """Create the indexes backing views and the email uniqueness constraint."""
        # Tombstones drop the email field, so sparse keeps deleted users out of the constraint
        await self.collection.create_index("email", unique=True, sparse=True)
        await self.collection.create_index("roles")
        await self.collection.create_index("code", sparse=True)
        await self.collection.create_index("verification_code", sparse=True)

    async def ping(self) -> None:
        await self.collection.database.command("ping")

    async def get(self, name: str) -> dict[str, Any]:
        """
        Fetch a user document by name or id.

        Raises:
            StoreError 404: If the document is missing or deleted
        """
        doc = await self.collection.find_one({"_id": user_doc_id(name)})
        if doc is None:
            raise StoreError(404, "not_found", "missing")
        if doc.get("_deleted"):
            raise StoreError(404, "not_found", "deleted")
        return doc

    async def insert(self, doc: dict[str, Any], doc_id: Optional[str] = None) -> dict[str, Any]:
        """
        Create or update a document.

        A document carrying ``_rev`` replaces the stored revision; one
        without must be new (or replace a tombstone). A plaintext
        ``password`` is swapped for its hash.

        Args:
            doc: Document body
            doc_id: Target id, defaults to the document's own ``_id``

        Returns:
            dict with ok, id and the new rev

        Raises:
            StoreError 409: On a stale revision or a unique-key collision
        """
        doc = dict(doc)
        doc_id = doc_id or doc.get("_id") or uuid.uuid4().hex
        doc["_id"] = doc_id

        password = doc.pop("password", None)
        if password:
            doc["password_hash"] = hash_password(password)

        current_rev = doc.pop("_rev", None)
        try:
            if current_rev is None:
                new_rev = await self._create(doc)
            else:
                new_rev = _next_rev(current_rev)
                doc["_rev"] = new_rev
                result = await self.collection.replace_one(
                    {"_id": doc_id, "_rev": current_rev, "_deleted": {"$ne": True}},
                    doc,
                )
                if result.matched_count == 0:
                    raise _conflict()
        except DuplicateKeyError:
            raise _conflict()

        return {"ok": True, "id": doc_id, "rev": new_rev}

    async def _create(self, doc: dict[str, Any]) -> str:
        existing = await self.collection.find_one({"_id": doc["_id"]})
        if existing is None:
            doc["_rev"] = _next_rev(None)
            await self.collection.insert_one(doc)
            return doc["_rev"]

        if not existing.get("_deleted"):
            raise _conflict()

        # Recreating a deleted document continues its revision history
        doc["_rev"] = _next_rev(existing["_rev"])
        result = await self.collection.replace_one(
            {"_id": doc["_id"], "_rev": existing["_rev"]}, doc
        )
        if result.matched_count == 0:
            raise _conflict()
        return doc["_rev"]

    async def destroy(self, doc_id: str, rev: str) -> dict[str, Any]:
        """
        Delete a document, leaving a tombstone.

        Raises:
            StoreError 404: If the document does not exist
            StoreError 409: If ``rev`` is not the current revision
        """
        doc_id = user_doc_id(doc_id)
        new_rev = _next_rev(rev)
        result = await self.collection.replace_one(
            {"_id": doc_id, "_rev": rev, "_deleted": {"$ne": True}},
            {"_id": doc_id, "_rev": new_rev, "_deleted": True},
        )
        if result.matched_count == 0:
            await self.get(doc_id)
            raise _conflict()
        return {"ok": True, "id": doc_id, "rev": new_rev}

    async def view(
        self,
        name: str,
        key: Any = None,
        keys: Optional[Iterable[Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        Query a user view by a single key or several keys.

        Multi-key queries return the union of matches, each document once.

        Returns:
            Rows of ``{"id", "key", "value"}`` ordered by document id

        Raises:
            StoreError 404: If the view does not exist
        """
        indexed = VIEWS.get(name)
        if indexed is None:
            raise StoreError(404, "not_found", "missing_named_view")

        query: dict[str, Any] = {"type": USER_TYPE, "_deleted": {"$ne": True}}
        if keys is not None:
            keys = list(keys)
            query[indexed] = {"$in": keys}
        else:
            query[indexed] = key

        docs = await self.collection.find(query).sort("_id", 1).to_list(length=None)

        rows = []
        for doc in docs:
            if keys is None:
                row_key = key
            else:
                value = doc.get(indexed)
                held = value if isinstance(value, list) else [value]
                row_key = next(k for k in keys if k in held)
            rows.append({"id": doc["_id"], "key": row_key, "value": doc})
        return rows

    async def auth(self, name: str, password: str) -> AuthResult:
        """
        Check credentials and issue an auth cookie.

        Server administrators authenticate without a name in the result,
        so callers must resolve it through ``session``.

        Raises:
            StoreError 401: If the name or password is incorrect
        """
        if name in self.admins:
            if verify_password(password, self.admins[name]):
                cookie = create_auth_cookie(self.secret, name, [ADMIN_ROLE])
                return AuthResult(name=None, roles=[ADMIN_ROLE], cookie=cookie)
        else:
            doc = await self.collection.find_one(
                {"_id": user_doc_id(name), "_deleted": {"$ne": True}}
            )
            if doc and verify_password(password, doc.get("password_hash")):
                roles = list(doc.get("roles") or [])
                cookie = create_auth_cookie(self.secret, doc["name"], roles)
                return AuthResult(name=doc["name"], roles=roles, cookie=cookie)

        raise StoreError(401, "unauthorized", "Name or password is incorrect.")

    async def session(self, cookie: str) -> dict[str, Any]:
        """
        Resolve an auth cookie to the principal it was issued for.

        Raises:
            StoreError 401: If the cookie is invalid or expired
        """
        try:
            ctx = decode_auth_cookie(self.secret, cookie, self.session_minutes * 60)
        except BadSignature:
            raise StoreError(401, "unauthorized", "Session cookie is invalid or expired.")
        return {"ok": True, "userCtx": {"name": ctx["name"], "roles": ctx["roles"]}}
