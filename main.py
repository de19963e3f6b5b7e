import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

import uvicorn
from fastapi import FastAPI

from config import RelaySettings, load_settings
from logging_config import configure_logging
from relay import ChangeRelay
from smartsheet_gateway import SmartsheetGateway
from webhook_router import webhook_router
from webhook_setup import check_sheet_accessibility, setup_webhook_for_sheet

logger = logging.getLogger(__name__)


def build_gateway(settings: RelaySettings) -> SmartsheetGateway:
    return SmartsheetGateway(
        settings.access_token,
        base_url=settings.api_base,
        timeout=settings.timeout_secs,
    )


def _attach(app: FastAPI, settings: RelaySettings, gateway: SmartsheetGateway) -> None:
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.relay = ChangeRelay(gateway, settings.destination_sheet_id)


def create_app(
    settings: Optional[RelaySettings] = None,
    gateway: Optional[SmartsheetGateway] = None,
    bootstrap: bool = True,
) -> FastAPI:
    """Build the relay app.

    Settings and gateway are created at startup unless injected. With
    ``bootstrap`` the source sheet is checked and the webhook is set up once
    the server is up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "relay", None) is None:
            app_settings = load_settings()
            configure_logging(app_settings.log_level)
            _attach(app, app_settings, build_gateway(app_settings))

        app_settings = app.state.settings
        webhook_task = None
        if bootstrap:
            await check_sheet_accessibility(app.state.gateway, app_settings.source_sheet_id)
            # runs after startup completes so the verification challenge can be answered
            webhook_task = asyncio.create_task(
                setup_webhook_for_sheet(
                    app.state.gateway,
                    app_settings.source_sheet_id,
                    app_settings.webhook_name,
                    app_settings.callback_url,
                )
            )
        logger.info(f"Server listening on port {app_settings.port}")

        try:
            yield
        finally:
            if webhook_task is not None and not webhook_task.done():
                webhook_task.cancel()
                with suppress(asyncio.CancelledError):
                    await webhook_task
            await app.state.gateway.aclose()
            logger.info("🧹 Gateway closed")

    app = FastAPI(title="Smartsheet Cell Relay", lifespan=lifespan)
    app.include_router(webhook_router)

    if settings is not None:
        configure_logging(settings.log_level)
        _attach(app, settings, gateway or build_gateway(settings))

    return app


app = create_app()


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
