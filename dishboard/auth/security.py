from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext


# pbkdf2_sha256 is salted and slow; passlib picks the round count and
# verify() does the constant-time compare.
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"

ADMIN_ROLE = "admin"


class InvalidToken(Exception):
    """Token signature, structure or expiry check failed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized or malformed hash in the store
        return False


def create_access_token(
    *,
    secret: str,
    user_id: int,
    username: str,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Sign {id, username, role?} with the shared secret.

    Without `expires_minutes` the token has no `exp` claim and the signature is
    a pure function of secret + claims.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")

    payload: Dict[str, Any] = {"id": int(user_id), "username": username}
    if role:
        payload["role"] = role
    if expires_minutes:
        exp = datetime.now(timezone.utc) + timedelta(minutes=max(1, int(expires_minutes)))
        payload["exp"] = int(exp.timestamp())
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify a token and return its claims, or raise InvalidToken."""
    if not token:
        raise InvalidToken("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")

    try:
        payload = jwt.decode(token, secret, algorithms=[_JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise InvalidToken("token_expired")
    except jwt.InvalidTokenError:
        raise InvalidToken("token_invalid")

    user_id = payload.get("id")
    username = payload.get("username")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise InvalidToken("token_missing_id")
    if not isinstance(username, str) or not username:
        raise InvalidToken("token_missing_username")

    claims: Dict[str, Any] = {"id": user_id, "username": username}
    role = payload.get("role")
    if role is not None:
        claims["role"] = str(role)
    return claims
