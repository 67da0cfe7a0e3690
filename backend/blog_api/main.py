import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from blog_api.core.config import settings
from blog_api.core.database import engine, Base
from blog_api.core.errors import register_exception_handlers
from blog_api.core.scheduler import start_scheduler, stop_scheduler
from blog_api.core.security import check_secret_key
from blog_api.api.routes import auth, settings as settings_routes

# Model modules register their tables on Base.metadata when imported
from blog_api.models import article, category, image, setting, tag, user  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown hooks.

    Startup: create tables, warn about a default signing secret, start the
    automatic-backup scheduler when enabled
    Shutdown: stop the scheduler
    """
    # Restore assumes the schema already matches; create_all only adds
    # missing tables and never migrates existing ones
    Base.metadata.create_all(bind=engine)
    check_secret_key()
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Blog API",
    description="Blog backend: authentication, settings and backup/restore",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - allows the SPA to call the API from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Every router is mounted under /api
app.include_router(auth.router, prefix="/api")
app.include_router(settings_routes.router, prefix="/api")


@app.get("/")
async def root():
    """Service name and version"""
    return {"message": "Blog API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Liveness probe"""
    return {"status": "healthy"}
