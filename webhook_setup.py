"""
Startup checks and webhook subscription setup.

Both run once when the service starts. Neither ever raises: a failure is
logged and the server keeps running.
"""

import logging
from typing import Optional

from models import Webhook
from smartsheet_gateway import SmartsheetError, SmartsheetGateway

logger = logging.getLogger(__name__)


async def check_sheet_accessibility(gateway: SmartsheetGateway, sheet_id: int) -> bool:
    """Sanity read of the source sheet (one row only)."""
    logger.info(f"Checking sheet with ID: {sheet_id}")
    try:
        sheet = await gateway.get_sheet(sheet_id, page_size=1)
    except SmartsheetError:
        logger.exception(f"Error accessing sheet with ID: {sheet_id}")
        return False

    logger.info(f'✅ Successfully accessed sheet: "{sheet.name}" at {sheet.permalink}')
    return True


def find_webhook(webhooks: list[Webhook], sheet_id: int, name: str) -> Optional[Webhook]:
    return next(
        (hook for hook in webhooks if hook.scope_object_id == sheet_id and hook.name == name),
        None,
    )


async def setup_webhook_for_sheet(
    gateway: SmartsheetGateway,
    sheet_id: int,
    webhook_name: str,
    callback_url: str,
) -> Optional[Webhook]:
    """
    Make sure a webhook named ``webhook_name`` exists for the sheet, is enabled
    and calls back to ``callback_url``. Safe to run on every start.

    Enabling makes Smartsheet send a verification challenge to the callback,
    so the HTTP server must already be accepting requests.
    """
    if not callback_url:
        logger.warning("⚠️ No callback URL configured, skipping webhook setup")
        return None

    try:
        listing = await gateway.list_webhooks()
        logger.info(f"Found {listing.total_count} webhooks for the user")

        webhook = find_webhook(listing.data, sheet_id, webhook_name)
        if webhook is None:
            webhook = await gateway.create_webhook(
                name=webhook_name,
                callback_url=callback_url,
                scope_object_id=sheet_id,
            )
            logger.info(f"Created new webhook with ID: {webhook.id}")

        updated = await gateway.update_webhook(webhook.id, enabled=True, callback_url=callback_url)
        logger.info(f"Webhook updated: Enabled = {updated.enabled}, Status = {updated.status}")
        return updated

    except SmartsheetError:
        logger.exception("❌ Error setting up webhook")
        return None
