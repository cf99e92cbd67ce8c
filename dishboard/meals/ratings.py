"""Dish ratings.

Each user holds at most one rating (1-10) per dish; submitting again replaces
the previous value. Averages are never stored, they are computed from the
rating rows every time dishes are listed.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from dishboard.auth.crud import get_user_by_id
from dishboard.errors import NotFound, Unauthorized, ValidationError
from dishboard.meals.crud import MAX_ID
from dishboard.util.time import utcnow_iso


RATING_MIN = 1
RATING_MAX = 10


def parse_rating(value: Any) -> int:
    """Coerce a submitted rating to a whole number in [1, 10].

    Accepts ints, integral floats and numeric strings ("7", "7.0").
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("rating_must_be_integer_1_to_10")

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError("rating_must_be_integer_1_to_10")

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("rating_must_be_integer_1_to_10")
        value = int(value)

    if not isinstance(value, int) or not (RATING_MIN <= value <= RATING_MAX):
        raise ValidationError("rating_must_be_integer_1_to_10")
    return value


def parse_dish_id(value: Any) -> int:
    if value is None or value == "" or value == 0:
        raise ValidationError("missing_dish_id")
    if isinstance(value, bool):
        raise ValidationError("invalid_dish_id")
    try:
        dish_id = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("invalid_dish_id")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError("invalid_dish_id")
    if not (1 <= dish_id <= MAX_ID):
        raise ValidationError("invalid_dish_id")
    return dish_id


def submit_rating(conn: Any, *, user_id: int, dish_id: Any, rating: Any) -> int:
    """Record `rating` as the user's only rating for the dish.

    Input is validated before any statement runs. The write is a single upsert
    on (user_id, dish_id) inside the caller's transaction, so concurrent
    re-rating by the same user still leaves exactly one row.
    """
    did = parse_dish_id(dish_id)
    value = parse_rating(rating)

    if get_user_by_id(conn, user_id) is None:
        raise Unauthorized("user_not_found")
    if conn.execute("SELECT 1 FROM dishes WHERE id=?", (did,)).fetchone() is None:
        raise NotFound("dish_not_found")

    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO ratings (user_id, dish_id, rating, created_at, updated_at)
        VALUES (?,?,?,?,?)
        ON CONFLICT (user_id, dish_id)
        DO UPDATE SET rating=excluded.rating, updated_at=excluded.updated_at
        """,
        (int(user_id), did, value, now, now),
    )
    return value


def average_rating(values: Sequence[int]) -> Optional[float]:
    if not values:
        return None
    return float(sum(values)) / len(values)


def group_ratings(rows: Iterable[Any]) -> Dict[int, List[Dict[str, Any]]]:
    """Bucket (dish_id, username, rating) rows by dish, keeping row order."""
    by_dish: Dict[int, List[Dict[str, Any]]] = {}
    for r in rows:
        by_dish.setdefault(int(r["dish_id"]), []).append(
            {"username": r["username"], "rating": int(r["rating"])}
        )
    return by_dish


def build_dish_views(dishes: Iterable[Any], rating_rows: Iterable[Any]) -> List[Dict[str, Any]]:
    by_dish = group_ratings(rating_rows)
    out: List[Dict[str, Any]] = []
    for d in dishes:
        d = dict(d)
        ratings = by_dish.get(int(d["id"]), [])
        out.append(
            {
                "id": int(d["id"]),
                "title": d["title"],
                "recipe": d["recipe"],
                "image_path": d.get("image_path"),
                "type": d["type"],
                "author_id": d.get("author_id"),
                "author_username": d.get("author_username") or None,
                "ratings": ratings,
                "average_rating": average_rating([x["rating"] for x in ratings]),
            }
        )
    return out


def list_dishes_with_ratings(conn: Any) -> List[Dict[str, Any]]:
    """All dishes, newest first, each with its ratings and average."""
    dishes = conn.execute(
        """
        SELECT d.id, d.title, d.recipe, d.image_path, d.type, d.author_id,
               u.username AS author_username
        FROM dishes d
        LEFT JOIN users u ON u.id = d.author_id
        ORDER BY d.id DESC
        """
    ).fetchall()
    if not dishes:
        return []

    dish_ids = [int(d["id"]) for d in dishes]
    placeholders = ",".join(["?"] * len(dish_ids))
    ratings = conn.execute(
        f"""
        SELECT r.dish_id, u.username, r.rating
        FROM ratings r
        JOIN users u ON u.id = r.user_id
        WHERE r.dish_id IN ({placeholders})
        ORDER BY r.dish_id ASC, r.id ASC
        """,
        dish_ids,
    ).fetchall()

    return build_dish_views(dishes, ratings)
