from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from dishboard.api.server import create_app
from dishboard.auth.crud import create_user
from dishboard.config import Config
from dishboard.db import Database, init_db


ADMIN_USERNAME = "igor"
ADMIN_PASSWORD = "igor-pass"
ADMIN_KEY = "test-admin-key"
JWT_SECRET = "test-secret"


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        DB_DSN=str(tmp_path / "dishboard.sqlite"),
        DB_POOL_SIZE=3,
        AUTH_JWT_SECRET=JWT_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        ADMIN_USERNAME=ADMIN_USERNAME,
        ADMIN_KEY=ADMIN_KEY,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=ADMIN_PASSWORD,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        UPLOAD_MAX_BYTES=1024,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def db(cfg) -> Database:
    """A schema-initialized store without the HTTP app."""
    database = Database(cfg.DB_DSN, max_connections=cfg.DB_POOL_SIZE)
    init_db(database)
    yield database
    database.close()


@pytest.fixture
def client(cfg) -> TestClient:
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def app_db(client) -> Database:
    return client.app.state.db


@pytest.fixture
def make_user(app_db) -> Callable[..., int]:
    def _make(username: str, password: str = "pw") -> int:
        with app_db.connection() as conn:
            return create_user(conn, username=username, password=password)["id"]

    return _make


@pytest.fixture
def login(client) -> Callable[..., Dict[str, str]]:
    """Log in through the API and return Authorization headers."""

    def _login(username: str, password: str = "pw") -> Dict[str, str]:
        r = client.post("/api/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _login


@pytest.fixture
def admin_key_headers() -> Dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
