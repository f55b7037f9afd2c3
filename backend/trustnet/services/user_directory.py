"""
TrustNet Backend — User Directory (Bearer Token Verification)
===============================================================

What:  Turns a bearer credential into the caller's identity (user id + email).
How:   PyJWT. Two verification modes, chosen at construction:

       JWKS:   RS256 tokens from the managed identity provider. The signing
                key is looked up by `kid` in the provider's published key set
                (PyJWKClient, cached). Issuer and audience are checked only
                when configured (Cognito access tokens carry `client_id`, not `aud`).
       Secret: HS256 tokens signed with a shared secret (TrustNet's own
                session cookie).

Who:   Constructed once at startup; called by the `get_current_user`
       dependency before any route logic runs.

Every failure surfaces as AuthenticationError. The reason is kept for the
server log; the client only ever sees "User is not authenticated".
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt

from trustnet.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    """Identity extracted from a verified token. Claims may be missing."""
    user_id: Optional[str]
    email: Optional[str]
    claims: Dict[str, Any] = field(default_factory=dict)


class UserDirectory:
    """
    Verifies bearer tokens and extracts identity claims.

    Args:
        jwks_url: Key set URL (JWKS mode).
        secret: Shared HS256 secret (secret mode). Ignored when jwks_url is set.
        issuer: Expected `iss`; None skips the check.
        audience: Expected `aud`; None skips the check.
        user_id_claim / email_claim: Claim names to read identity from.
        jwks_client: Pre-built PyJWKClient (tests inject a mock).
    """

    # TrustNet's own cookie names the user id claim `userId`
    FALLBACK_USER_ID_CLAIMS = ("userId", "sub")

    def __init__(
        self,
        jwks_url: Optional[str] = None,
        secret: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        user_id_claim: str = "sub",
        email_claim: str = "email",
        jwks_cache_ttl: int = 300,
        jwks_client: Optional[jwt.PyJWKClient] = None,
    ):
        if jwks_client is None and jwks_url:
            jwks_client = jwt.PyJWKClient(jwks_url, cache_keys=True, lifespan=jwks_cache_ttl)
        self._jwks_client = jwks_client
        self._secret = secret or None
        self._issuer = issuer or None
        self._audience = audience or None
        self._user_id_claim = user_id_claim
        self._email_claim = email_claim

        if self._jwks_client is not None:
            self._algorithms: List[str] = ["RS256"]
        else:
            self._algorithms = ["HS256"]

    @property
    def is_configured(self) -> bool:
        return self._jwks_client is not None or self._secret is not None

    async def verify(self, token: Optional[str]) -> AuthenticatedUser:
        """
        Verify `token` and return the identity it asserts.

        Raises:
            AuthenticationError: token absent, malformed, expired, or failing
            signature / issuer / audience checks; or no verification configured.
        """
        if not token:
            raise AuthenticationError(reason="missing token")
        if not self.is_configured:
            logger.error("Token verification is not configured; rejecting request")
            raise AuthenticationError(reason="verification not configured")

        try:
            key = await self._signing_key(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                issuer=self._issuer,
                audience=self._audience,
                options={
                    "require": ["exp"],
                    "verify_aud": self._audience is not None,
                    "verify_iss": self._issuer is not None,
                },
            )
        except jwt.PyJWTError as e:
            logger.info("Token rejected: %s (%s)", type(e).__name__, e)
            raise AuthenticationError(reason=type(e).__name__) from e

        return AuthenticatedUser(
            user_id=self._read_user_id(claims),
            email=claims.get(self._email_claim) or None,
            claims=claims,
        )

    async def _signing_key(self, token: str) -> Any:
        if self._jwks_client is None:
            return self._secret
        # Key set fetch is blocking urllib I/O on a cache miss
        signing_key = await asyncio.to_thread(
            self._jwks_client.get_signing_key_from_jwt, token
        )
        return signing_key.key

    def _read_user_id(self, claims: Dict[str, Any]) -> Optional[str]:
        value = claims.get(self._user_id_claim)
        if not value:
            for name in self.FALLBACK_USER_ID_CLAIMS:
                value = claims.get(name)
                if value:
                    break
        return str(value) if value else None
