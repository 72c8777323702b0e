"""Login tokens: compact HS256 JWTs signed with the server secret.

Decoding never raises; any malformed, forged, expired or foreign token
simply yields ``None`` and the caller answers 401.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

ISSUER = "moxbox"
_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenPayload:
    sub: str
    username: str
    role: str
    exp: datetime


def create_token(
    subject: str,
    username: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_hours: int = 24,
) -> str:
    """Sign a token for ``subject`` (a user id) valid for ``expires_hours``."""
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    issued = datetime.now(timezone.utc)
    claims = {
        "sub": subject,
        "username": username,
        "role": role,
        "iss": ISSUER,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(hours=expires_hours)).timestamp()),
    }
    signing_input = _segment(_HEADER) + b"." + _segment(claims)
    return (signing_input + b"." + _b64encode(_sign(secret, signing_input))).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    if algorithm != "HS256":
        return None

    try:
        header_b64, claims_b64, signature_b64 = token.encode().split(b".")
    except ValueError:
        return None

    try:
        signature = _b64decode(signature_b64)
        if not hmac.compare_digest(_sign(secret, header_b64 + b"." + claims_b64), signature):
            return None
        claims: Dict[str, Any] = json.loads(_b64decode(claims_b64))
        expires = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    except (ValueError, KeyError, TypeError):
        return None

    if claims.get("iss") != ISSUER or expires <= datetime.now(timezone.utc):
        return None

    return TokenPayload(
        sub=str(claims.get("sub", "")),
        username=str(claims.get("username", "")),
        role=str(claims.get("role", "")),
        exp=expires,
    )


def _sign(secret: str, signing_input: bytes) -> bytes:
    return hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()


def _segment(obj: Dict[str, Any]) -> bytes:
    return _b64encode(json.dumps(obj, separators=(",", ":")).encode())


def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))
