# src/auth/oauth.py
from dataclasses import dataclass
from typing import Protocol

import jwt
from fastapi.concurrency import run_in_threadpool
from jwt import PyJWKClient

from src.auth.exceptions import InvalidFederatedToken
from src.logging import get_logger

logger = get_logger(__name__)

GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class FederatedIdentity:
    email: str
    name: str
    picture: str | None = None
    subject: str | None = None


class IdentityTokenVerifier(Protocol):
    async def verify_identity_token(
        self, token: str, audience: str
    ) -> FederatedIdentity: ...


class GoogleTokenVerifier:
    """Verifies Google ID tokens against Google's published signing keys."""

    def __init__(self, certs_url: str = GOOGLE_CERTS_URL):
        self._jwks = PyJWKClient(certs_url, cache_keys=True)

    def _decode(self, token: str, audience: str) -> dict:
        signing_key = self._jwks.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=audience,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )

    async def verify_identity_token(self, token: str, audience: str) -> FederatedIdentity:
        if not audience:
            logger.error("google_client_id_missing")
            raise InvalidFederatedToken("Google sign-in is not configured")

        try:
            payload = await run_in_threadpool(self._decode, token, audience)
        except jwt.PyJWTError as e:
            logger.warning("google_token_rejected", error=str(e))
            raise InvalidFederatedToken() from None

        if payload.get("iss") not in GOOGLE_ISSUERS:
            logger.warning("google_token_bad_issuer", issuer=payload.get("iss"))
            raise InvalidFederatedToken()

        email = payload.get("email")
        name = payload.get("name")
        if not email or not name:
            raise InvalidFederatedToken("Google token is missing email or name")

        return FederatedIdentity(
            email=email,
            name=name,
            picture=payload.get("picture"),
            subject=payload.get("sub"),
        )
