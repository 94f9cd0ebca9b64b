"""FastAPI application bootstrap with router wiring."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from musivault.api.routers import auth, collection, health, imports, public, users
from musivault.core.config import get_settings
from musivault.db import models  # noqa: F401  registers tables on Base.metadata
from musivault.db.base import Base
from musivault.db.session import engine

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    cors_origins = settings.cors_origins
    logger.info(f"[CORS] Allowed origins: {cors_origins}")

    # Cookies carry the session, so credentials must be allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(health.router)
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(imports.router, prefix="/api/collection", tags=["imports"])
    app.include_router(collection.router, prefix="/api/collection", tags=["collection"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(public.router, prefix="/api/public", tags=["public"])

    return app


app = create_app()
