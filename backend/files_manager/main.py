"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from files_manager.config import settings
from files_manager.container import Container, build_container
from files_manager.database import async_session, engine
from files_manager.errors import register_exception_handlers
from files_manager.logging_config import setup_logging
from files_manager.models import Base
from files_manager.routes.app_status import router as status_router
from files_manager.routes.files import router as files_router
from files_manager.services.token_store import RedisTokenStore

logger = logging.getLogger(__name__)


def attach_container(app: FastAPI, container: Container) -> None:
    """Expose the wired services to the route dependencies."""
    app.state.container = container
    app.state.session_factory = container.session_factory
    app.state.token_store = container.token_store
    app.state.auth_service = container.auth
    app.state.file_service = container.file_service
    app.state.user_directory = container.users


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Create the API. A prebuilt container skips the default database/Redis wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, connect the token store, start the queue workers."""
        setup_logging()
        owned = container is None
        if owned:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            token_store = RedisTokenStore(settings)
            await token_store.init()
            active = build_container(settings, async_session, token_store)
            attach_container(app, active)
        else:
            active = container

        await active.start()

        yield

        # Cleanup
        await active.stop()
        if owned:
            await token_store.shutdown()
            await engine.dispose()

    app = FastAPI(
        title="Files Manager API",
        version="1.0.0",
        description="Per-user file storage with public sharing and image thumbnails.",
        lifespan=lifespan,
    )

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(status_router)
    app.include_router(files_router)

    if container is not None:
        attach_container(app, container)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("files_manager.main:app", host="0.0.0.0", port=settings.API_PORT)
