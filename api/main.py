import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.shared.dtos import ErrorResponse, HealthCheckResponse
from api.shared.entities.registry import BaseEntity
from api.shared.exceptions import ChatAppException
from core.logging import setup_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

setup_logging()

logger = logging.getLogger("chat")


class CustomFastAPI(FastAPI):
    container: DependencyContainer


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("Starting application initialization...")
    start_time = time.time()

    try:
        logger.info("Initializing database connection...")
        db_start = time.time()
        db_resource = _app.container.infrastructure.database()
        await db_resource.init()
        if SETTINGS.DATABASE.AUTO_CREATE_TABLES:
            await db_resource.create_all(BaseEntity.metadata)
        async with db_resource.engine.begin() as _conn:
            # Verify database connection
            await _conn.execute(text("SELECT 1"))
        logger.info(
            f"✅ Database connection established in {time.time() - db_start:.2f}s"
        )

        logger.info("Initializing chat model client...")
        model_resource = _app.container.infrastructure.chat_model()
        await model_resource.init()
        logger.info("✅ Chat model client ready")

        logger.info(
            f"✅ Application startup completed in {time.time() - start_time:.2f}s"
        )
    except Exception as e:
        logger.exception(f"❌ Failed to initialize application: {str(e)}")
        raise

    yield

    try:
        model_resource = _app.container.infrastructure.chat_model()
        if model_resource:
            await model_resource.shutdown()
        db_resource = _app.container.infrastructure.database()
        if db_resource:
            await db_resource.shutdown()
        logger.info("Application shutdown complete")
    except Exception:
        logger.exception("Error during shutdown")


def create_fastapi_app() -> CustomFastAPI:
    _app = CustomFastAPI(
        title="Chat API",
        description="Streamed chat with a language model and persisted conversations",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Initialize dependency container
    _app.container = DependencyContainer()
    _app.container.infrastructure.config.from_dict(SETTINGS.model_dump())
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=SETTINGS.APP.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[SETTINGS.CHAT.CONVERSATION_ID_HEADER],
    )

    # Include feature routers
    from api.features.chat.router import router as chat_router
    from api.features.conversation.router import messages_router, router as conversation_router
    from api.features.users.router import router as users_router

    _app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])
    _app.include_router(
        conversation_router, prefix="/api/conversations", tags=["Conversations"]
    )
    _app.include_router(messages_router, prefix="/api/messages", tags=["Conversations"])
    _app.include_router(users_router, prefix="/api/users", tags=["Users"])

    register_exception_handlers(_app)
    register_health_routes(_app)
    return _app


def register_health_routes(_app: CustomFastAPI) -> None:
    @_app.get("/")
    async def root():
        return {"message": "Chat API is running", "status": "ok"}

    @_app.get("/health", response_model=HealthCheckResponse)
    async def health():
        database = "ok"
        try:
            async with _app.container.infrastructure.database().get_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"Health check database query failed: {e}")
            database = "unavailable"
        return HealthCheckResponse(
            status="ok" if database == "ok" else "degraded",
            dependencies={"database": database},
        )


def register_exception_handlers(_app: FastAPI) -> None:
    @_app.exception_handler(ChatAppException)
    async def domain_exception_handler(request: Request, exc: ChatAppException):
        body = ErrorResponse(
            error=exc.message, error_code=exc.error_code, details=exc.details
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @_app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
            headers=getattr(exc, "headers", None),
        )

    @_app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "Validation Error", "detail": str(exc), "status_code": 422},
        )

    @_app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": "An unexpected error occurred",
                "status_code": 500,
            },
        )


app = create_fastapi_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)
