import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from dishboard.auth.crud import bootstrap_admin_if_needed
from dishboard.config import load_config
from dishboard.db import Database, init_db


def main() -> None:
    cfg = load_config()
    logging.basicConfig(level=cfg.LOG_LEVEL)

    db = Database(cfg.DB_DSN, max_connections=1)
    try:
        init_db(db)
        boot = bootstrap_admin_if_needed(cfg, db)
    finally:
        db.close()

    print(f"DB initialized: {cfg.DB_DSN}")
    if boot:
        print(f"Created admin user: {boot['username']}")


if __name__ == "__main__":
    main()
