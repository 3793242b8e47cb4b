"""
FastAPI application entry point.

WHAT: Gateway app: lifespan, CORS, error handlers, /api/v1 routes
WHY: Single process the mobile frontend talks to
HOW: AppState built in the lifespan and released on shutdown
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.router import api_router
from .core.app_state import AppState
from .core.config import settings
from .core.database import close_db, init_db
from .middleware.error_handler import register_exception_handlers
from .utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gateway lifespan.

    WHAT: Local store, application state and stored session on startup;
          negotiation screens, HTTP client and store on shutdown
    WHY: Subscriptions and pooled connections must not outlive the process
    HOW: A state preset on app.state (tests) is used instead of building one
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} against {settings.SUPABASE_URL}")
    init_db()

    state: AppState | None = getattr(app.state, "app_state", None)
    if state is None:
        state = AppState.create()
        app.state.app_state = state
    if state.auth is not None and state.auth.restore() is None:
        logger.info("No stored session; waiting for phone sign-in")

    yield

    logger.info(f"Shutting down ({len(state.sessions)} negotiation screens open)")
    await state.shutdown()
    close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Client gateway for product discovery and buyer/seller price negotiation",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/")
async def root():
    """Service banner."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "busqai.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
