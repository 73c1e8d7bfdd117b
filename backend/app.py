import logging
import os
import tomllib
from contextlib import asynccontextmanager
from pathlib import Path

import setproctitle

import settings
from brotli_asgi import BrotliMiddleware
from fastapi import FastAPI, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from models.common import get_db
from routes.auth_route import router as auth_router
from routes.connections_route import router as connections_router
from routes.jams_route import router as jams_router
from routes.messages_route import router as messages_router
from routes.profile_route import router as profile_router
from services.errors import JammerError
from services.geo import geo_capability
from settings import PROJECT_PATH
from starlette.middleware import Middleware
from starlette.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware

from utils import setup_logs

logger = logging.getLogger("jammer.main")
setup_logs()
setproctitle.setproctitle("Jammer API")


def get_version() -> str:
    """Read version from pyproject.toml"""

    with open(PROJECT_PATH / "pyproject.toml", "rb") as f:
        pyproject = tomllib.load(f)
    return pyproject["project"]["version"]


def update_database():  # pragma: no cover
    """Init the DB or run the Alembic migrations"""
    import alembic.config

    if not Path("alembic.ini").is_file():
        os.chdir(settings.BACKEND_DIR)

    try:
        alembic.config.main(
            argv=[
                "--raiseerr",
                "upgrade",
                "head",
            ]
        )
    except Exception as e:
        logger.exception(f"Cannot run DB migrations: {e}")


def detect_store_features():  # pragma: no cover
    with get_db() as session:
        geo_capability.detect(session)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app"""
    logger.debug("Starting...")
    update_database()
    detect_store_features()
    yield
    logger.debug("Closing app")


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def jammer_error_handler(request: Request, exc: JammerError):
    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(400, message)


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.url.path}: {exc}")
    return error_response(500, str(getattr(exc, "orig", None) or exc))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Jammer",
        description="Find musicians and jam together",
        version=get_version(),
        middleware=[
            Middleware(BrotliMiddleware, minimum_size=1000),
            Middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET_KEY),
        ],
        swagger_ui_parameters={
            "defaultModelsExpandDepth": 0,
        },  # collapse the swagger schema
        lifespan=app_lifespan,
    )
    app.add_exception_handler(JammerError, jammer_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # Mount routers, auth first so /profile/check wins over /profile/{id}
    api_router = APIRouter()
    api_router.include_router(auth_router)
    api_router.include_router(profile_router)
    api_router.include_router(connections_router)
    api_router.include_router(jams_router)
    api_router.include_router(messages_router)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    settings.STORAGE_DIR.mkdir(parents=True, exist_ok=True)
    app.mount(
        f"{settings.API_PREFIX}/storage",
        StaticFiles(directory=settings.STORAGE_DIR),
        name="storage",
    )
    return app
