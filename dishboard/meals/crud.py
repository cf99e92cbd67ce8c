from __future__ import annotations

from typing import Any, Dict, Optional

from dishboard.auth.crud import get_user_by_id
from dishboard.errors import Forbidden, NotFound, Unauthorized, ValidationError
from dishboard.util.time import utcnow_iso

# Largest id a SQLite INTEGER or Postgres BIGINT column can hold.
MAX_ID = 2**63 - 1


def require_dish_fields(title: Optional[str], recipe: Optional[str], dish_type: Optional[str]) -> None:
    if not (title or "").strip() or not (recipe or "").strip() or not (dish_type or "").strip():
        raise ValidationError("missing_fields")


def get_dish(conn: Any, dish_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT id, title, recipe, image_path, type, author_id FROM dishes WHERE id=?",
        (int(dish_id),),
    ).fetchone()
    return dict(row) if row is not None else None


def authorize_owner(dish: Dict[str, Any], user_id: int) -> None:
    """Only the author may change or delete a dish. There is no admin override."""
    author_id = dish.get("author_id")
    if author_id is None or int(author_id) != int(user_id):
        raise Forbidden("access_denied")


def get_owned_dish(conn: Any, dish_id: int, user_id: int) -> Dict[str, Any]:
    dish = get_dish(conn, dish_id)
    if dish is None:
        raise NotFound("dish_not_found")
    authorize_owner(dish, user_id)
    return dish


def create_dish(
    conn: Any,
    *,
    author_id: int,
    title: str,
    recipe: str,
    dish_type: str,
    image_path: Optional[str] = None,
) -> int:
    require_dish_fields(title, recipe, dish_type)
    if get_user_by_id(conn, author_id) is None:
        raise Unauthorized("user_not_found")

    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO dishes (title, recipe, image_path, type, author_id, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?)
        RETURNING id
        """,
        (title.strip(), recipe, image_path, dish_type.strip(), int(author_id), now, now),
    ).fetchone()
    return int(row["id"])


def update_dish(
    conn: Any,
    *,
    dish_id: int,
    title: str,
    recipe: str,
    dish_type: str,
    image_path: Optional[str] = None,
) -> None:
    # A NULL image_path keeps the current image.
    require_dish_fields(title, recipe, dish_type)
    conn.execute(
        """
        UPDATE dishes
        SET title=?, recipe=?, image_path=COALESCE(?, image_path), type=?, updated_at=?
        WHERE id=?
        """,
        (title.strip(), recipe, image_path, dish_type.strip(), utcnow_iso(), int(dish_id)),
    )


def delete_dish(conn: Any, *, dish_id: int) -> None:
    conn.execute("DELETE FROM ratings WHERE dish_id=?", (int(dish_id),))
    conn.execute("DELETE FROM dishes WHERE id=?", (int(dish_id),))
