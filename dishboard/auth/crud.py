from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from dishboard.config import DEFAULT_BOOTSTRAP_ADMIN_PASSWORD, Config
from dishboard.db import Database
from dishboard.errors import Conflict, Forbidden, NotFound, ValidationError
from dishboard.util.time import utcnow_iso

from .security import hash_password, verify_password


logger = logging.getLogger(__name__)


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {"id": int(d["id"]), "username": d["username"]}


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE id=?",
        (int(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT id, username FROM users ORDER BY id ASC").fetchall()
    return [public_user(r) for r in rows]


def verify_user_credentials(conn: Any, username: str, password: str) -> Optional[Any]:
    row = get_user_by_username(conn, username)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def create_user(conn: Any, *, username: str, password: str) -> Dict[str, Any]:
    u = normalize_username(username)
    if not u or not password:
        raise ValidationError("username_and_password_required")

    existing = conn.execute("SELECT 1 FROM users WHERE username=?", (u,)).fetchone()
    if existing is not None:
        raise Conflict("username_exists")

    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO users (username, password_hash, created_at, updated_at)
        VALUES (?,?,?,?)
        """,
        (u, hash_password(password), now, now),
    )
    row = get_user_by_username(conn, u)
    assert row is not None
    return public_user(row)


def update_password_hash(conn: Any, *, username: str, password: str) -> None:
    if not normalize_username(username) or not password:
        raise ValidationError("username_and_new_password_required")

    row = get_user_by_username(conn, username)
    if row is None:
        raise NotFound("user_not_found")

    conn.execute(
        "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
        (hash_password(password), utcnow_iso(), int(row["id"])),
    )


def delete_user(conn: Any, *, username: str, protected_username: str) -> None:
    """Delete an account together with its ratings.

    The protected (admin) account is refused before the store is touched.
    The user's dishes stay but lose their author.
    """
    u = normalize_username(username)
    if not u:
        raise ValidationError("username_required")
    if u == normalize_username(protected_username):
        raise Forbidden("cannot_delete_admin")

    row = get_user_by_username(conn, u)
    if row is None:
        raise NotFound("user_not_found")
    user_id = int(row["id"])

    conn.execute("DELETE FROM ratings WHERE user_id=?", (user_id,))
    conn.execute("UPDATE dishes SET author_id=NULL WHERE author_id=?", (user_id,))
    conn.execute("DELETE FROM users WHERE id=?", (user_id,))
    logger.info("Deleted user id=%d username=%s", user_id, u)


def bootstrap_admin_if_needed(cfg: Config, db: Database) -> Optional[Dict[str, Any]]:
    """Create the designated admin account if the users table is empty.

    - ADMIN_USERNAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (default: admin)

    This only runs when there are 0 rows in `users`.
    """

    with db.connection() as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None

        username = normalize_username(cfg.ADMIN_USERNAME)
        password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD

        # If env explicitly clears these, don't create anything.
        if not username or not password:
            return None

        if password == DEFAULT_BOOTSTRAP_ADMIN_PASSWORD:
            logger.warning(
                "Creating admin %s with the default password; set AUTH_BOOTSTRAP_ADMIN_PASSWORD", username
            )

        return create_user(conn, username=username, password=password)
