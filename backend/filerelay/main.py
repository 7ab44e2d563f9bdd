"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from filerelay.config import Settings, get_settings
from filerelay.errors import register_error_handlers
from filerelay.logging_config import configure_logging
from filerelay.routes.files import router as files_router
from filerelay.services.kv_store import build_store
from filerelay.services.relay import FileRelayService
from filerelay.services.telegram_client import TelegramClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the link store and the Telegram session, close them on shutdown."""
    settings: Settings = app.state.settings
    client = TelegramClient(
        bot_token=settings.TELEGRAM_BOT_TOKEN,
        chat_id=settings.TELEGRAM_CHAT_ID,
        base_url=settings.TELEGRAM_API_URL,
        timeout=settings.TELEGRAM_TIMEOUT,
    )
    store = await build_store(settings)
    await client.open()
    app.state.relay_service = FileRelayService(client, store, settings)
    logger.info(f"File relay ready (store={settings.KV_STORE_TYPE})")

    yield

    # Cleanup
    await client.close()
    await store.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="File Relay",
        version="1.0.0",
        description="Upload files to Telegram and serve them back by short public id.",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.settings = settings

    if settings.CORS_ORIGINS:
        origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    register_error_handlers(app)
    app.include_router(files_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("filerelay.main:app", host="0.0.0.0", port=settings.API_PORT)
