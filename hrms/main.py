"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from hrms.core.config import settings
from hrms.core.middleware import RequestIdFilter, setup_middleware
from hrms.core.exceptions import HRMSError

from hrms.api.auth import router as auth_router
from hrms.api.roles import router as roles_router
from hrms.api.users import router as users_router
from hrms.api.system import router as system_router
from hrms.api.admin import router as admin_router
from hrms.api.tasks import router as tasks_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdFilter())
logger = logging.getLogger("hrms")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    try:
        from hrms.db.session import SessionLocal, create_tables
        from hrms.services.system_service import system_service

        if settings.AUTO_CREATE_TABLES:
            create_tables()
        db = SessionLocal()
        try:
            if system_service.needs_initialization(db):
                logger.warning("No super admin yet, POST /api/system/initialize to bootstrap")
        finally:
            db.close()
    except SQLAlchemyError as e:
        logger.warning("Database not available: %s", e)

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title="HR Management API",
    description="Employee records and role-based access control",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(HRMSError)
async def hrms_exception_handler(request: Request, exc: HRMSError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(system_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
