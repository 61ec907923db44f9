"""Resolve the logical actor behind a request.

Reactions and views are attributed to one of three identity kinds, strongest
first: an authenticated user, a returning browser carrying a signed visitor
cookie, or an anonymous fingerprint derived from IP address and user agent.
Resolution never fails; malformed input only degrades to a weaker kind.
"""

from __future__ import annotations

import enum
import hashlib
import logging
import secrets
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

from starlette.requests import HTTPConnection
from starlette.responses import Response

from classboard.core.settings import settings

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 32
SIGNATURE_LENGTH = 16
UNKNOWN = "unknown"


class IdentityType(str, enum.Enum):
    """Identity kinds in precedence order."""

    AUTHENTICATED = "authenticated"
    VISITOR = "visitor"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class ResolvedIdentity:
    """Actor attributed to a single request.

    Build instances through the ``authenticated``/``visitor``/``anonymous``
    constructors so that ``identifier`` always matches the kind's
    authoritative key.
    """

    type: IdentityType
    identifier: str
    fingerprint_hash: str
    ip_address: str
    user_agent: str
    user_id: int | None = None
    visitor_id: str | None = None

    @classmethod
    def authenticated(
        cls,
        user_id: int,
        *,
        fingerprint_hash: str,
        ip_address: str,
        user_agent: str,
        visitor_id: str | None = None,
    ) -> ResolvedIdentity:
        return cls(
            type=IdentityType.AUTHENTICATED,
            identifier=str(user_id),
            user_id=user_id,
            visitor_id=visitor_id,
            fingerprint_hash=fingerprint_hash,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @classmethod
    def visitor(
        cls,
        visitor_id: str,
        *,
        fingerprint_hash: str,
        ip_address: str,
        user_agent: str,
    ) -> ResolvedIdentity:
        return cls(
            type=IdentityType.VISITOR,
            identifier=visitor_id,
            visitor_id=visitor_id,
            fingerprint_hash=fingerprint_hash,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @classmethod
    def anonymous(
        cls,
        *,
        fingerprint_hash: str,
        ip_address: str,
        user_agent: str,
    ) -> ResolvedIdentity:
        return cls(
            type=IdentityType.ANONYMOUS,
            identifier=fingerprint_hash,
            fingerprint_hash=fingerprint_hash,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.type is IdentityType.AUTHENTICATED

    def lookup_keys(self) -> list[tuple[str, str | int]]:
        """Return ``(column, value)`` pairs in lookup priority order.

        Records may have been written under an older, weaker identity of the
        same actor, so every key the identity carries is tried.
        """
        keys: list[tuple[str, str | int]] = []
        if self.user_id is not None:
            keys.append(("user_id", self.user_id))
        if self.visitor_id:
            keys.append(("visitor_id", self.visitor_id))
        if self.fingerprint_hash:
            keys.append(("fingerprint_hash", self.fingerprint_hash))
        return keys


class IdentityResolver:
    """Derive ``ResolvedIdentity`` values from HTTP requests and socket handshakes."""

    def __init__(
        self,
        secret: str,
        *,
        cookie_name: str = "__vid",
        cookie_max_age: int = 365 * 24 * 60 * 60,
        secure_cookie: bool = False,
        trust_proxy: bool = True,
    ) -> None:
        self._secret = secret
        self.cookie_name = cookie_name
        self.cookie_max_age = cookie_max_age
        self.secure_cookie = secure_cookie
        self.trust_proxy = trust_proxy

    # --- Primitives -----------------------------------------------------------------
    def client_ip(self, headers: Mapping[str, str], client_host: str | None) -> str:
        """Return the originating client address, honouring the first proxy hop."""
        if self.trust_proxy:
            forwarded = headers.get("x-forwarded-for")
            if forwarded:
                first_hop = forwarded.split(",")[0].strip()
                if first_hop:
                    return first_hop
        return client_host or UNKNOWN

    def fingerprint(self, ip_address: str, user_agent: str) -> str:
        """Return the weak correlation key for an IP address and user agent."""
        material = f"{ip_address}::{user_agent}::{self._secret}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]

    def sign(self, value: str) -> str:
        """Return the truncated signature appended to visitor cookie values."""
        material = f"{value}::{self._secret}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()[:SIGNATURE_LENGTH]

    def signed_value(self, visitor_id: str) -> str:
        """Return the cookie value ``<visitor_id>.<signature>``."""
        return f"{visitor_id}.{self.sign(visitor_id)}"

    def verify_cookie(self, raw: str | None) -> str | None:
        """Return the visitor id from a cookie value, or None if it is absent or forged."""
        if not raw or not isinstance(raw, str):
            return None
        visitor_id, sep, signature = raw.rpartition(".")
        if not sep or not visitor_id:
            return None

        expected = self.sign(visitor_id)
        if len(signature) != len(expected):
            return None
        if not secrets.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Rejected visitor cookie with invalid signature")
            return None
        return visitor_id

    def mint_visitor_cookie(self, response: Response) -> str:
        """Generate a new visitor id and attach it to ``response`` as a signed cookie."""
        visitor_id = str(uuid.uuid4())
        response.set_cookie(
            key=self.cookie_name,
            value=self.signed_value(visitor_id),
            max_age=self.cookie_max_age,
            path="/",
            secure=self.secure_cookie,
            httponly=True,
            samesite="lax",
        )
        logger.debug("Minted visitor id %s...", visitor_id[:8])
        return visitor_id

    # --- Resolution -----------------------------------------------------------------
    def _request_traits(self, connection: HTTPConnection) -> tuple[str, str, str]:
        client_host = connection.client.host if connection.client else None
        ip_address = self.client_ip(connection.headers, client_host)
        user_agent = connection.headers.get("user-agent") or UNKNOWN
        return ip_address, user_agent, self.fingerprint(ip_address, user_agent)

    def resolve(
        self,
        request: HTTPConnection,
        response: Response,
        user_id: int | None = None,
    ) -> ResolvedIdentity:
        """Resolve a cookie-capable request, minting a visitor cookie when needed.

        Authenticated requests also receive a visitor cookie so that later
        anonymous activity from the same browser still correlates.
        """
        ip_address, user_agent, fingerprint_hash = self._request_traits(request)
        visitor_id = self.verify_cookie(request.cookies.get(self.cookie_name))
        if visitor_id is None:
            visitor_id = self.mint_visitor_cookie(response)

        if user_id is not None:
            return ResolvedIdentity.authenticated(
                user_id,
                visitor_id=visitor_id,
                fingerprint_hash=fingerprint_hash,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        return ResolvedIdentity.visitor(
            visitor_id,
            fingerprint_hash=fingerprint_hash,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def resolve_handshake(
        self,
        connection: HTTPConnection,
        user_id: int | None = None,
    ) -> ResolvedIdentity:
        """Resolve a transport that cannot set cookies, such as a WebSocket handshake.

        A valid visitor cookie already present on the handshake is honoured;
        otherwise non-authenticated actors fall back to their fingerprint.
        """
        ip_address, user_agent, fingerprint_hash = self._request_traits(connection)
        visitor_id = self.verify_cookie(connection.cookies.get(self.cookie_name))

        if user_id is not None:
            return ResolvedIdentity.authenticated(
                user_id,
                visitor_id=visitor_id,
                fingerprint_hash=fingerprint_hash,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        if visitor_id is not None:
            return ResolvedIdentity.visitor(
                visitor_id,
                fingerprint_hash=fingerprint_hash,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        return ResolvedIdentity.anonymous(
            fingerprint_hash=fingerprint_hash,
            ip_address=ip_address,
            user_agent=user_agent,
        )


@lru_cache(maxsize=1)
def get_identity_resolver() -> IdentityResolver:
    """Return the process-wide resolver configured from settings."""
    if not settings.visitor_cookie_secret:
        logger.warning(
            "VISITOR_COOKIE_SECRET is not set; visitor cookies are signed with SECRET_KEY"
        )
    return IdentityResolver(
        settings.identity_secret,
        cookie_name=settings.visitor_cookie_name,
        cookie_max_age=settings.visitor_cookie_max_age,
        secure_cookie=settings.is_production,
        trust_proxy=settings.trust_proxy,
    )
