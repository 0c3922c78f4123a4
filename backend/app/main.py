from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import get_settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging
from core.redis_config import close_redis_connection
from app.startup import run_startup_checks

# ========== Reviews ==========
from modules.reviews.routers.reviews_router import router as reviews_router
from modules.reviews.routers.establishment_reviews_router import router as establishment_reviews_router
from modules.reviews.routers.user_reviews_router import router as user_reviews_router

# ========== Health ==========
from modules.health.routes.health_routes import router as health_router

configure_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration on startup, release connections on shutdown"""
    run_startup_checks()
    yield
    close_redis_connection()


app = FastAPI(
    title="Establishment Reviews API",
    description="Review lifecycle for the restaurant directory: posting, editing, deleting and listing reviews",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Register exception handlers
register_exception_handlers(app)

app.include_router(reviews_router, prefix="/api/v1")
app.include_router(establishment_reviews_router, prefix="/api/v1")
app.include_router(user_reviews_router, prefix="/api/v1")
app.include_router(health_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"message": "Establishment reviews backend is running"}
