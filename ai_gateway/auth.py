"""Bearer token verification for gateway callers."""

import hashlib
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol


class AuthenticationError(Exception):
    """Raised when a bearer token cannot be verified."""


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str


class TokenVerifier(Protocol):
    def verify(self, token: str) -> CallerIdentity:
        """Return the verified caller identity or raise AuthenticationError."""
        ...


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def parse_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("No authentication token provided")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must use the Bearer scheme")
    return token.strip()


class StaticTokenVerifier:
    """Verifies tokens against a configured table of SHA-256 digests."""

    def __init__(self, token_hashes: Mapping[str, str]) -> None:
        self._token_hashes = {digest.lower(): user_id for digest, user_id in token_hashes.items()}

    def verify(self, token: str) -> CallerIdentity:
        digest = hash_token(token)
        for known_digest, user_id in self._token_hashes.items():
            if secrets.compare_digest(digest, known_digest):
                return CallerIdentity(user_id=user_id)
        raise AuthenticationError("Invalid or expired token")
