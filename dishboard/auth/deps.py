from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dishboard.config import Config
from dishboard.db import Database
from dishboard.errors import Forbidden, InternalError, Unauthorized

from .crud import normalize_username
from .security import InvalidToken, decode_access_token


logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class StaticKey:
    """Admitted by the shared admin key header; no identity attached."""


@dataclass(frozen=True)
class ClaimToken:
    """Admitted by a valid token whose username is the designated admin."""

    username: str
    claims: Dict[str, Any] = field(default_factory=dict)


AdmissionMethod = Union[StaticKey, ClaimToken]


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise InternalError("server_config_missing")
    return cfg


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise InternalError("store_unavailable")
    return db


def is_admin_username(cfg: Config, username: Optional[str]) -> bool:
    u = normalize_username(username or "")
    return bool(u) and u == normalize_username(cfg.ADMIN_USERNAME)


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """User guard.

    Missing bearer token -> 401. Bad signature, malformed or expired token -> 403.
    Otherwise the verified claims ({id, username, role?}) are returned and kept
    on `request.state.user`.
    """
    cfg = get_config(request)

    token = _bearer_token(credentials)
    if not token:
        raise Unauthorized("missing_token")

    try:
        claims = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except InvalidToken as e:
        raise Forbidden(e.reason)

    request.state.user = claims
    return claims


def _admit_by_key(cfg: Config, presented: Optional[str]) -> Tuple[Optional[StaticKey], str]:
    expected = cfg.ADMIN_KEY
    if not presented:
        return None, "no_key"
    if not expected:
        return None, "key_disabled"
    if hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        return StaticKey(), "ok"
    return None, "key_mismatch"


def _admit_by_token(cfg: Config, token: Optional[str]) -> Tuple[Optional[ClaimToken], str]:
    if not token:
        return None, "no_token"
    try:
        claims = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except InvalidToken as e:
        return None, e.reason
    if not is_admin_username(cfg, claims.get("username")):
        return None, "not_admin"
    return ClaimToken(username=claims["username"], claims=claims), "ok"


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    x_admin_key: Optional[str] = Header(None),
) -> AdmissionMethod:
    """Admin guard.

    The static key is checked first and, when it matches, admits without looking
    at any token. Otherwise the bearer token must verify and name the designated
    admin. Any other outcome is 403.
    """
    cfg = get_config(request)

    by_key, key_reason = _admit_by_key(cfg, x_admin_key)
    if by_key is not None:
        logger.info("Admin admitted by static key path=%s", request.url.path)
        return by_key

    by_token, token_reason = _admit_by_token(cfg, _bearer_token(credentials))
    if by_token is not None:
        request.state.user = by_token.claims
        return by_token

    logger.warning(
        "Admin access denied path=%s key=%s token=%s",
        request.url.path,
        key_reason,
        token_reason,
    )
    raise Forbidden("admin_access_denied")
