"""
Smartsheet Webhook Endpoints

POST /   callback target registered with Smartsheet
GET  /   service info

Callbacks are answered 200 whatever happens to the individual events, so
Smartsheet does not re-deliver a batch because one cell failed to sync.
Only an unparseable body or an unexpected fault returns 500.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from models import EventBatch, Handshake, StatusUpdate, classify_notification

logger = logging.getLogger(__name__)

webhook_router = APIRouter(tags=["Smartsheet Webhook"])


@webhook_router.get("/")
async def root(request: Request):
    settings = getattr(request.app.state, "settings", None)
    return {
        "service": "Smartsheet Cell Relay",
        "source_sheet_id": settings.source_sheet_id if settings else None,
        "destination_sheet_id": settings.destination_sheet_id if settings else None,
        "webhook_name": settings.webhook_name if settings else None,
    }


@webhook_router.post("/")
async def receive_callback(request: Request):
    """Handle a Smartsheet callback: verification, event batch or status change."""
    try:
        body = await request.json()
        notification = classify_notification(body)

        if isinstance(notification, Handshake):
            logger.info("Received verification callback from Smartsheet")
            return JSONResponse(
                status_code=200,
                content={"smartsheetHookResponse": notification.challenge},
            )

        if isinstance(notification, EventBatch):
            logger.info(f"📥 Received {len(notification.events)} event(s) at {datetime.now().isoformat()}")
            relay = request.app.state.relay
            await relay.process_events(notification)
            return PlainTextResponse("OK", status_code=200)

        if isinstance(notification, StatusUpdate):
            logger.info(f"Received status update: {notification.new_status}")
            return PlainTextResponse("OK", status_code=200)

        logger.info(f"Received unknown callback: {notification.raw!r}")
        return PlainTextResponse("OK", status_code=200)

    except Exception as e:
        logger.exception("❌ Error processing webhook event")
        return PlainTextResponse(f"Error: {e}", status_code=500)
