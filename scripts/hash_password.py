"""Print password hashes for seeding the users table by hand.

Usage:
  python scripts/hash_password.py user1:password user2:password
"""

import argparse
import sys
from pathlib import Path
from typing import Iterable, Tuple

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from dishboard.auth.crud import normalize_username
from dishboard.auth.security import hash_password
from dishboard.util.time import utcnow_iso


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_seed_sql(users: Iterable[Tuple[str, str]], now: str) -> str:
    values = []
    for username, password in users:
        row = (normalize_username(username), hash_password(password), now, now)
        values.append("(" + ", ".join(_quote(v) for v in row) + ")")

    return (
        "INSERT INTO users (username, password_hash, created_at, updated_at) VALUES\n"
        + ",\n".join(values)
        + "\nON CONFLICT (username) DO NOTHING;"
    )


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("pairs", nargs="+", metavar="USERNAME:PASSWORD")
    args = ap.parse_args()

    users = []
    for pair in args.pairs:
        username, sep, password = pair.partition(":")
        if not sep or not username or not password:
            sys.exit(f"Expected USERNAME:PASSWORD, got {pair!r}")
        users.append((username, password))

    print(build_seed_sql(users, utcnow_iso()))


if __name__ == "__main__":
    main()
