# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from auth import auth_router
from config import Settings, get_settings
from database import Database
from notifier import ChangeNotifier
from router import category_router, events_router, router
from schemas import ErrorResponse
from validation import field_errors

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO"):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def error_response(status_code: int, message: str, errors=None, headers=None):
    body = ErrorResponse(message=message, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        errors=field_errors(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(
        exc.status_code,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store operation failed on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url)
        database.connect()
        notifier = ChangeNotifier(queue_size=settings.notifier_queue_size)
        notifier.start()
        app.state.database = database
        app.state.notifier = notifier
        try:
            yield
        finally:
            notifier.stop()
            database.dispose()

    app = FastAPI(title="Expense Tracker API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, store_exception_handler)

    app.include_router(router, prefix="/api", tags=["expenses"])
    app.include_router(category_router, prefix="/api", tags=["categories"])
    app.include_router(auth_router, prefix="/api/auth", tags=["authentication"])
    app.include_router(events_router, prefix="/api", tags=["events"])

    @app.get("/")
    def home():
        return {"message": "Welcome to Expense Tracker API"}

    return app


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
