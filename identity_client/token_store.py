"""
Session record for the identity client: access_token, refresh_token and the absolute expiry.
Expiry is read from the access token's exp claim WITHOUT verifying the signature.
The decoded claim only decides when to refresh; it is never used to trust the token.
"""
import json
import logging
from dataclasses import dataclass

from jwt.utils import base64url_decode

from identity_client.config import DEFAULT_TOKEN_LIFETIME_SECONDS, TOKEN_EXPIRY_BUFFER_SECONDS
from identity_client.models import TokenPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: str
    expires_at: float

    def is_valid(self, now: float, buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECONDS) -> bool:
        """True while now is more than buffer_seconds before expires_at."""
        return now < self.expires_at - buffer_seconds

    def expires_in(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


def read_expiry_claim(access_token: str) -> float | None:
    """
    Numeric exp claim (seconds since epoch) from an unverified JWT, or None when the token
    is malformed or carries no usable exp.
    """
    parts = access_token.split(".")
    if len(parts) != 3:
        return None
    # only the payload segment is decoded; header and signature are never looked at
    try:
        payload = json.loads(base64url_decode(parts[1]))
    except ValueError as e:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueErrors
        logger.debug("Access token payload not decodable: %s", e)
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    # bool is an int subclass; exp=True is not a timestamp
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not exp:
        return None
    return float(exp)


def derive_expires_at(access_token: str, now: float) -> float:
    """exp claim if readable, else now + DEFAULT_TOKEN_LIFETIME_SECONDS."""
    exp = read_expiry_claim(access_token)
    if exp is None:
        return now + DEFAULT_TOKEN_LIFETIME_SECONDS
    return exp


def build_session(tokens: TokenPair, now: float, expires_at: float | None = None) -> Session:
    """New Session for tokens; expires_at overrides the derived expiry when given."""
    if expires_at is None:
        expires_at = derive_expires_at(tokens.access_token, now)
    return Session(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=expires_at,
    )
