"""
Smartsheet Gateway

Async access to the Smartsheet REST API (2.0) for the relay:
reading sheets, updating a row, and managing the webhook subscription.

One SmartsheetGateway is created at startup and shared by every request;
it holds no mutable state besides the underlying httpx connection pool.
"""

import logging
from typing import Any, Iterable, Optional, Sequence

import httpx
from pydantic import BaseModel, ValidationError

from models import Sheet, Webhook, WebhookList

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.smartsheet.com/2.0"


class SmartsheetError(Exception):
    """A Smartsheet call failed, either in transport or with an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code

    def __str__(self):
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.error_code is not None:
            parts.append(f"errorCode={self.error_code}")
        return " ".join(parts)


def _id_list(ids: Iterable[int]) -> str:
    return ",".join(str(i) for i in ids)


def _parse(model: type[BaseModel], data: Any, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SmartsheetError(f"{what}: unexpected response shape: {e}") from e


def _result(data: Any, what: str) -> dict:
    if not isinstance(data, dict) or not isinstance(data.get("result"), dict):
        raise SmartsheetError(f"{what}: response has no result object")
    return data["result"]


class SmartsheetGateway:
    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        logger.debug("Smartsheet %s %s", method, path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SmartsheetError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            error_code = None
            message = response.text[:500]
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                error_code = body.get("errorCode")
                message = body.get("message") or message
            raise SmartsheetError(
                f"{method} {path}: {message}",
                status_code=response.status_code,
                error_code=error_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SmartsheetError(f"{method} {path}: response is not JSON", status_code=response.status_code) from e

    # =========================================================================
    # Sheets
    # =========================================================================

    async def get_sheet(
        self,
        sheet_id: int,
        row_ids: Optional[Sequence[int]] = None,
        column_ids: Optional[Sequence[int]] = None,
        page_size: Optional[int] = None,
    ) -> Sheet:
        """Fetch a sheet, optionally filtered to some rows/columns."""
        params = {}
        if row_ids:
            params["rowIds"] = _id_list(row_ids)
        if column_ids:
            params["columnIds"] = _id_list(column_ids)
        if page_size is not None:
            params["pageSize"] = page_size

        data = await self._request("GET", f"/sheets/{sheet_id}", params=params)
        return _parse(Sheet, data, f"GET /sheets/{sheet_id}")

    async def update_row(self, sheet_id: int, row_id: int, cells: list[dict]) -> dict:
        """Update cells of one existing row. A cell value of None clears the cell."""
        body = [{"id": row_id, "cells": cells}]
        return await self._request("PUT", f"/sheets/{sheet_id}/rows", json=body)

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def list_webhooks(self) -> WebhookList:
        data = await self._request("GET", "/webhooks", params={"includeAll": "true"})
        return _parse(WebhookList, data, "GET /webhooks")

    async def create_webhook(
        self,
        name: str,
        callback_url: str,
        scope_object_id: int,
        events: Sequence[str] = ("*.*",),
        version: int = 1,
    ) -> Webhook:
        body = {
            "name": name,
            "callbackUrl": callback_url,
            "scope": "sheet",
            "scopeObjectId": scope_object_id,
            "events": list(events),
            "version": version,
        }
        data = await self._request("POST", "/webhooks", json=body)
        return _parse(Webhook, _result(data, "POST /webhooks"), "POST /webhooks")

    async def update_webhook(
        self,
        webhook_id: int,
        enabled: bool = True,
        callback_url: Optional[str] = None,
    ) -> Webhook:
        body: dict[str, Any] = {"enabled": enabled}
        if callback_url:
            body["callbackUrl"] = callback_url
        data = await self._request("PUT", f"/webhooks/{webhook_id}", json=body)
        what = f"PUT /webhooks/{webhook_id}"
        return _parse(Webhook, _result(data, what), what)
