from __future__ import annotations

import logging

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from ztnet import __version__
from ztnet.config import AppSettings, get_settings
from ztnet.db.session import SessionLocal
from ztnet.logging_config import configure_logging
from ztnet.notifications.tasks import CeleryNotificationDispatcher
from ztnet.routes.auth import router as auth_router
from ztnet.routes.members import router as members_router
from ztnet.routes.networks import router as networks_router
from ztnet.routes.notations import router as notations_router
from ztnet.routes.options import router as options_router

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings | None = None) -> FastAPI:
    app_settings = settings or get_settings()
    configure_logging(app_settings.log_level)

    app = FastAPI(title="ZTNET", version=__version__)
    app.state.settings = app_settings
    app.state.session_maker = SessionLocal
    # The controller client is created lazily by the dependency on first use.
    app.state.controller = None
    app.state.dispatcher = CeleryNotificationDispatcher(app_settings)

    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.app_secret_key,
        session_cookie=app_settings.session_cookie_name,
        max_age=app_settings.session_cookie_max_age_seconds,
        same_site="lax",
        https_only=app_settings.session_cookie_secure,
    )

    app.include_router(auth_router)
    app.include_router(networks_router)
    app.include_router(members_router)
    app.include_router(notations_router)
    app.include_router(options_router)

    @app.get("/", tags=["system"], name="root")
    async def root() -> dict[str, str]:
        return {"service": "ztnet", "status": "ok"}

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "controller_provider": app_settings.zt_provider}

    logger.info(
        "application created env=%s controller_provider=%s",
        app_settings.app_env,
        app_settings.zt_provider,
    )
    return app


app = create_app()
