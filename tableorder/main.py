import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tableorder.api.v1.router import api_router_v1
from tableorder.core.config import settings
from tableorder.core.exceptions import ErrorKind, OrderingError
from tableorder.core.logging import setup_logging
from tableorder.database import SessionLocal, engine
from tableorder.db.base_class import Base
from tableorder.db.init_db import init_db
from tableorder.services.redis_service import redis_client

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STORE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # In production, use Alembic migrations
    if settings.ENVIRONMENT == "development":
        Base.metadata.create_all(bind=engine)
        logger.info("Tables created (development only)")
    if settings.SEED_SAMPLE_DATA:
        db = SessionLocal()
        try:
            init_db(db)
        finally:
            db.close()
    yield
    redis_client.disconnect()
    engine.dispose()
    logger.info("Record store connections closed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Table-side ordering API: table sessions with join codes, line items and a kitchen queue",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    version=settings.PROJECT_VERSION,
    contact={
        "name": "Support",
        "email": settings.SUPPORT_EMAIL,
    },
    lifespan=lifespan,
)

# CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> Optional[JSONResponse]:
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if request.scope.get("type") == "websocket":
        # Starlette hands websocket failures the WebSocket itself, which has no response to send
        logger.error(f"WS {request.url.path} failed: {exc.message}")
        await request.close(code=status.WS_1011_INTERNAL_ERROR)
        return None
    if status_code >= 500:
        logger.error(f"{request.scope.get('method')} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


app.include_router(api_router_v1, prefix=settings.API_V1_STR)


@app.get("/", tags=["Root"])
async def read_root():
    return {
        "message": f"Welcome to {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}",
        "docs": "/docs",
        "status": "operational",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health", tags=["Root"])
async def health():
    return {"status": "ok"}
