"""AuthLedger - user accounts and token lifecycle API."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from authledger.config import get_settings
from authledger.logging import configure_logging, get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    configure_logging(settings.log_level, json_output=settings.log_json, development_mode=settings.debug)

    from authledger.api.deps import get_token_service
    from authledger.database import Base, SessionLocal, engine
    from authledger.services.user_service import UserService

    # Import all models so they're registered with Base
    from authledger import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    if settings.bootstrap_admin_enabled:
        db = SessionLocal()
        try:
            UserService(get_token_service()).bootstrap_admin(
                db, settings.admin_login, settings.admin_email, settings.admin_password
            )
        finally:
            db.close()

    logger.info("startup_complete", app=settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    description="User accounts with rotating refresh tokens and server-side revocation",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from authledger.api import auth, users  # noqa: E402
from authledger.api.errors import register_error_handlers  # noqa: E402

register_error_handlers(app)
app.include_router(auth.router, prefix="/api")
app.include_router(auth.password_router, prefix="/api")
app.include_router(users.router, prefix="/api")
