"""Authentication / authorization.

- Users table (username + password hash)
- JWT access tokens sent as `Authorization: Bearer <token>`
- Two guards: `get_current_user` for any logged-in user and `require_admin`
  for the admin panel (shared `X-Admin-Key` header, or a token belonging to
  the designated admin username)
"""

from .deps import (
    AdmissionMethod,
    ClaimToken,
    StaticKey,
    get_current_user,
    require_admin,
)
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "AdmissionMethod",
    "ClaimToken",
    "StaticKey",
    "get_current_user",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
]
