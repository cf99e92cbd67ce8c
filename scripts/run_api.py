import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn

from dishboard.config import load_config


def main() -> None:
    cfg = load_config()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=cfg.LOG_LEVEL,
    )
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "3300"))
    uvicorn.run("dishboard.api.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
