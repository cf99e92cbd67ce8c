from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from dishboard.errors import ValidationError


logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class BlobStore:
    """Dish images on local disk.

    Files are named `<epoch-ms>-<client filename>` under `root`; the stored
    path (`<root>/<name>`) is what goes into `dishes.image_path`.
    """

    def __init__(self, root: str, *, max_bytes: int):
        self.root = root
        self.max_bytes = int(max_bytes)

    def ensure_root(self) -> None:
        Path(self.root).mkdir(parents=True, exist_ok=True)

    def save(self, upload: UploadFile) -> str:
        self.ensure_root()
        name = os.path.basename(upload.filename or "") or "image"
        path = os.path.join(self.root, f"{int(time.time() * 1000)}-{name}")

        written = 0
        with open(path, "wb") as out:
            while True:
                chunk = upload.file.read(_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_bytes:
                    break
                out.write(chunk)

        if written > self.max_bytes:
            os.remove(path)
            raise ValidationError("image_too_large")
        return path

    def _owns(self, path: str) -> bool:
        root = Path(self.root).resolve()
        return root in Path(path).resolve().parents

    def delete(self, path: str) -> None:
        if not self._owns(path):
            raise ValueError(f"path outside upload dir: {path}")
        os.remove(path)

    def discard(self, path: Optional[str]) -> None:
        """Best-effort delete, run after the response. Failures are only logged."""
        if not path:
            return
        try:
            self.delete(path)
        except (OSError, ValueError) as e:
            logger.error("Error removing image %s: %s", path, e)
        else:
            logger.info("Removed image %s", path)
