"""
Application factory for the HipChat add-on service.

Wires settings, the credential store, the HipChat client, the lifecycle
controller and the signed request validator onto a FastAPI app.

Run locally (uvicorn ships in the "server" extra):
    uvicorn hipchat_addon.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hipchat_addon.api.routes import health, lifecycle
from hipchat_addon.config.settings import AddonSettings, get_settings
from hipchat_addon.credentials.sql_store import SqlCredentialStore
from hipchat_addon.credentials.store import CredentialStore
from hipchat_addon.integrations.hipchat.client import HipChatClient, TokenExchanger
from hipchat_addon.platform.errors import ErrorHandlerMiddleware
from hipchat_addon.platform.logging_config import configure_logging
from hipchat_addon.platform.tasks import BackgroundTaskRunner
from hipchat_addon.services.lifecycle import LifecycleController
from hipchat_addon.services.signed_params import SignedParamValidator

logger = logging.getLogger(__name__)


def build_sql_store(database_url: str) -> SqlCredentialStore:
    """Create a SqlCredentialStore and make sure its table exists."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    store = SqlCredentialStore(sessionmaker(bind=engine))
    store.create_schema()
    return store


def create_app(
    settings: Optional[AddonSettings] = None,
    store: Optional[CredentialStore] = None,
    exchanger: Optional[TokenExchanger] = None,
    task_runner: Optional[BackgroundTaskRunner] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Defaults to AddonSettings.from_env()
        store: Defaults to a SqlCredentialStore on settings.database_url
        exchanger: Defaults to a HipChatClient on settings.token_url
        task_runner: Defaults to a pool of settings.background_workers threads
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = build_sql_store(settings.database_url)
    owned_client: Optional[HipChatClient] = None
    if exchanger is None:
        owned_client = HipChatClient(
            token_url=settings.token_url,
            timeout=settings.http_timeout_seconds,
        )
        exchanger = owned_client

    controller = LifecycleController(
        store=store,
        exchanger=exchanger,
        task_runner=(
            task_runner if task_runner is not None
            else BackgroundTaskRunner(max_workers=settings.background_workers)
        ),
        scopes=settings.token_scopes,
    )
    validator = SignedParamValidator(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "HipChat add-on started",
            extra={"token_url": settings.token_url, "workers": settings.background_workers},
        )
        yield
        controller.shutdown(wait=False)
        if owned_client is not None:
            owned_client.close()

    app = FastAPI(title="HipChat Add-on", lifespan=lifespan)
    app.state.settings = settings
    app.state.lifecycle = controller
    app.state.signed_params = validator

    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(health.router)
    app.include_router(lifecycle.router)

    return app
