"""
Models for Smartsheet callbacks and sheet data.

Only the fields the relay reads are declared; everything else Smartsheet
sends is kept on the model (extra="allow") and ignored.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Loose(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# =============================================================================
# Sheet data (responses of the Sheet Access Gateway)
# =============================================================================

class SheetColumn(_Loose):
    id: int
    title: str = ""


class SheetCell(_Loose):
    column_id: int = Field(alias="columnId")
    value: Optional[Any] = None
    display_value: Optional[str] = Field(default=None, alias="displayValue")


class SheetRow(_Loose):
    id: int
    row_number: int = Field(alias="rowNumber")
    cells: list[SheetCell] = []


class Sheet(_Loose):
    id: Optional[int] = None
    name: Optional[str] = None
    permalink: Optional[str] = None
    columns: list[SheetColumn] = []
    rows: list[SheetRow] = []


class Webhook(_Loose):
    id: int
    name: Optional[str] = None
    scope_object_id: Optional[int] = Field(default=None, alias="scopeObjectId")
    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")
    enabled: Optional[bool] = None
    status: Optional[str] = None


class WebhookList(_Loose):
    total_count: int = Field(default=0, alias="totalCount")
    data: list[Webhook] = []


# =============================================================================
# Inbound notifications
# =============================================================================

class ChangeEvent(_Loose):
    object_type: Optional[str] = Field(default=None, alias="objectType")
    event_type: Optional[str] = Field(default=None, alias="eventType")
    row_id: Optional[int] = Field(default=None, alias="rowId")
    column_id: Optional[int] = Field(default=None, alias="columnId")

    @property
    def is_cell_change(self) -> bool:
        return self.object_type == "cell"


class Handshake(BaseModel):
    challenge: str


class EventBatch(_Loose):
    scope: Optional[str] = None
    scope_object_id: Optional[int] = Field(default=None, alias="scopeObjectId")
    events: list[ChangeEvent]


class StatusUpdate(BaseModel):
    new_status: str


class Unrecognized(BaseModel):
    raw: Any = None


ChangeNotification = Union[Handshake, EventBatch, StatusUpdate, Unrecognized]


def _has(payload: dict, key: str) -> bool:
    return payload.get(key) is not None


def classify_notification(payload: Any) -> ChangeNotification:
    """Classify a parsed callback body; the first matching shape wins.

    Raises ``pydantic.ValidationError`` when a payload carries ``events``
    that are not a list of event objects.
    """
    if not isinstance(payload, dict):
        return Unrecognized(raw=payload)
    if _has(payload, "challenge"):
        return Handshake(challenge=str(payload["challenge"]))
    if _has(payload, "events"):
        return EventBatch.model_validate(payload)
    if _has(payload, "newWebHookStatus"):
        return StatusUpdate(new_status=str(payload["newWebHookStatus"]))
    return Unrecognized(raw=payload)


# =============================================================================
# Pipeline values
# =============================================================================

class ResolvedColumn(BaseModel):
    id: int
    title: str


class ResolvedRow(BaseModel):
    id: int
    row_number: int


class ResolvedCell(BaseModel):
    """The changed source cell plus the keys used to match it across sheets."""

    model_config = ConfigDict(frozen=True)

    value: Optional[str] = None
    column: ResolvedColumn
    row: ResolvedRow


class DestinationTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    row_id: int
    column_id: int


class RelaySummary(BaseModel):
    events: int = 0
    cell_events: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0
