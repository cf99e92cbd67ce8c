"""Create a user in the configured DB.

Usage:
  python scripts/create_user.py --username alice --password '...'

NOTE: Handy for local/dev; in production use the admin panel.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from dishboard.auth.crud import create_user
from dishboard.config import load_config
from dishboard.db import Database, init_db
from dishboard.errors import AppError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    db = Database(cfg.DB_DSN, max_connections=1)
    try:
        init_db(db)
        with db.connection() as conn:
            u = create_user(conn, username=args.username, password=args.password)
    except AppError as e:
        sys.exit(f"Could not create user: {e.message}")
    finally:
        db.close()

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
