from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Path, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from dishboard.auth import AdmissionMethod, get_current_user, require_admin
from dishboard.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    delete_user,
    list_users,
    update_password_hash,
    verify_user_credentials,
)
from dishboard.auth.deps import get_config, get_db, is_admin_username
from dishboard.auth.security import ADMIN_ROLE, create_access_token
from dishboard.config import Config, load_config
from dishboard.db import Database, init_db
from dishboard.errors import AppError, Forbidden, Unauthorized, ValidationError
from dishboard.meals import BlobStore, list_dishes_with_ratings, submit_rating
from dishboard.meals.crud import MAX_ID, create_dish, delete_dish, get_owned_dish, require_dish_fields, update_dish


logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class CreateUserRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    new_password: Optional[str] = None


class RatingRequest(BaseModel):
    dish_id: Any = None
    rating: Any = None


def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blobs


def _issue_token(cfg: Config, user_row: Any, role: Optional[str] = None) -> str:
    return create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=int(user_row["id"]),
        username=str(user_row["username"]),
        role=role,
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Dishboard", version="0.1.0")
    app.state.cfg = cfg
    app.state.db = Database(cfg.DB_DSN, max_connections=cfg.DB_POOL_SIZE)
    app.state.blobs = BlobStore(cfg.UPLOAD_DIR, max_bytes=cfg.UPLOAD_MAX_BYTES)

    _cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if _cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.mount("/uploads", StaticFiles(directory=cfg.UPLOAD_DIR, check_dir=False), name="uploads")

    @app.on_event("startup")
    def _on_startup() -> None:
        db: Database = app.state.db
        db.open()
        init_db(db)
        app.state.blobs.ensure_root()

        # Only when the users table is empty
        boot = bootstrap_admin_if_needed(cfg, db)
        if boot:
            logger.info("Bootstrapped admin user: username=%s", boot.get("username"))

    @app.on_event("shutdown")
    def _on_shutdown() -> None:
        app.state.db.close()

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"message": "invalid_request"})

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/api/login")
    def login(
        payload: LoginRequest,
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        if not payload.username or not payload.password:
            raise ValidationError("username_and_password_required")

        with db.connection() as conn:
            user_row = verify_user_credentials(conn, payload.username, payload.password)
        if user_row is None:
            logger.info("Failed login for username=%s", payload.username)
            raise ValidationError("invalid_credentials")

        return {"token": _issue_token(cfg, user_row)}

    @app.post("/api/admin/login")
    def admin_login(
        payload: LoginRequest,
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        if not payload.username or not payload.password:
            raise ValidationError("username_and_password_required")

        with db.connection() as conn:
            user_row = verify_user_credentials(conn, payload.username, payload.password)
        if user_row is None:
            logger.info("Failed admin login for username=%s", payload.username)
            raise ValidationError("invalid_credentials")
        if not is_admin_username(cfg, user_row["username"]):
            logger.warning("Admin login refused for non-admin username=%s", user_row["username"])
            raise Forbidden("access_denied")

        return {"token": _issue_token(cfg, user_row, role=ADMIN_ROLE)}

    @app.get("/api/admin/me")
    def admin_me(
        user: Dict[str, Any] = Depends(get_current_user),
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        if not is_admin_username(cfg, user.get("username")):
            raise Forbidden("access_denied")
        return {"ok": True, "username": user["username"]}

    # -----------------------------
    # Admin: users
    # -----------------------------

    @app.post("/api/admin/users")
    def admin_create_user(
        payload: CreateUserRequest,
        _admin: AdmissionMethod = Depends(require_admin),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        if not payload.username or not payload.password:
            raise ValidationError("username_and_password_required")
        with db.connection() as conn:
            u = create_user(conn, username=payload.username, password=payload.password)
        logger.info("Created user id=%s username=%s", u["id"], u["username"])
        return {"message": "User added"}

    @app.get("/api/admin/users")
    def admin_list_users(
        _admin: AdmissionMethod = Depends(require_admin),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        with db.connection() as conn:
            return list_users(conn)

    @app.delete("/api/admin/users/{username}")
    def admin_delete_user(
        username: str,
        _admin: AdmissionMethod = Depends(require_admin),
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        if is_admin_username(cfg, username):
            raise Forbidden("cannot_delete_admin")
        with db.connection() as conn:
            delete_user(conn, username=username, protected_username=cfg.ADMIN_USERNAME)
        return {"message": "User deleted"}

    @app.put("/api/admin/users/{username}/password")
    def admin_change_password(
        username: str,
        payload: ChangePasswordRequest,
        _admin: AdmissionMethod = Depends(require_admin),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        if not payload.new_password:
            raise ValidationError("username_and_new_password_required")
        with db.connection() as conn:
            update_password_hash(conn, username=username, password=payload.new_password)
        return {"message": "Password updated"}

    # -----------------------------
    # Meals
    # -----------------------------

    @app.get("/api/meals")
    def meals_list(
        _user: Dict[str, Any] = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        with db.connection() as conn:
            return list_dishes_with_ratings(conn)

    @app.post("/api/meals")
    def meals_create(
        title: Optional[str] = Form(None),
        recipe: Optional[str] = Form(None),
        dish_type: Optional[str] = Form(None, alias="type"),
        image: Optional[UploadFile] = File(None),
        user: Dict[str, Any] = Depends(get_current_user),
        db: Database = Depends(get_db),
        blobs: BlobStore = Depends(get_blobs),
    ) -> Dict[str, Any]:
        require_dish_fields(title, recipe, dish_type)

        image_path: Optional[str] = None
        try:
            if _has_file(image):
                image_path = blobs.save(image)
            with db.connection() as conn:
                dish_id = create_dish(
                    conn,
                    author_id=int(user["id"]),
                    title=title,
                    recipe=recipe,
                    dish_type=dish_type,
                    image_path=image_path,
                )
        except Exception:
            blobs.discard(image_path)
            raise
        return {"message": "Added", "id": dish_id}

    @app.put("/api/meals/{meal_id}")
    def meals_update(
        background_tasks: BackgroundTasks,
        meal_id: int = Path(..., ge=1, le=MAX_ID),
        title: Optional[str] = Form(None),
        recipe: Optional[str] = Form(None),
        dish_type: Optional[str] = Form(None, alias="type"),
        image: Optional[UploadFile] = File(None),
        user: Dict[str, Any] = Depends(get_current_user),
        db: Database = Depends(get_db),
        blobs: BlobStore = Depends(get_blobs),
    ) -> Dict[str, Any]:
        require_dish_fields(title, recipe, dish_type)

        new_path: Optional[str] = None
        try:
            with db.connection() as conn:
                dish = get_owned_dish(conn, meal_id, int(user["id"]))
                # Only store the new image once ownership is confirmed.
                if _has_file(image):
                    new_path = blobs.save(image)
                update_dish(
                    conn,
                    dish_id=meal_id,
                    title=title,
                    recipe=recipe,
                    dish_type=dish_type,
                    image_path=new_path,
                )
        except Exception:
            blobs.discard(new_path)
            raise

        if new_path and dish.get("image_path"):
            background_tasks.add_task(blobs.discard, dish["image_path"])
        return {"message": "Dish updated"}

    @app.delete("/api/meals/{meal_id}")
    def meals_delete(
        background_tasks: BackgroundTasks,
        meal_id: int = Path(..., ge=1, le=MAX_ID),
        user: Dict[str, Any] = Depends(get_current_user),
        db: Database = Depends(get_db),
        blobs: BlobStore = Depends(get_blobs),
    ) -> Dict[str, Any]:
        with db.connection() as conn:
            dish = get_owned_dish(conn, meal_id, int(user["id"]))
            delete_dish(conn, dish_id=meal_id)

        if dish.get("image_path"):
            background_tasks.add_task(blobs.discard, dish["image_path"])
        return {"message": "Dish deleted"}

    # -----------------------------
    # Ratings
    # -----------------------------

    @app.post("/api/ratings")
    def ratings_submit(
        payload: RatingRequest,
        user: Dict[str, Any] = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        with db.connection() as conn:
            submit_rating(conn, user_id=int(user["id"]), dish_id=payload.dish_id, rating=payload.rating)
        return {"message": "Rated"}

    return app


app = create_app()
