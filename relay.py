"""
Change Relay

Turns a Smartsheet event batch into single-cell writes on the destination
sheet:

1. resolve each changed cell on the source sheet (value, column title, row number)
2. find the destination column with the same title and the row with the same number
3. write the value into that one cell

Each event is isolated: a failure is logged and the next event still runs.
Nothing here raises to the HTTP layer for a sync failure.
"""

import logging
from typing import Optional, TypeVar

from models import (
    ChangeEvent,
    DestinationTarget,
    EventBatch,
    RelaySummary,
    ResolvedCell,
    ResolvedColumn,
    ResolvedRow,
    Sheet,
)
from smartsheet_gateway import SmartsheetError, SmartsheetGateway

logger = logging.getLogger(__name__)
ambiguity_logger = logging.getLogger("relay.ambiguous")

T = TypeVar("T")


class CellResolutionError(Exception):
    """The filtered source read did not contain the changed cell."""


def _first_match(items: list[T], predicate, what: str) -> Optional[T]:
    matches = [item for item in items if predicate(item)]
    if len(matches) > 1:
        ambiguity_logger.warning(
            f"⚠️ {len(matches)} destination {what} match; using the first in listing order"
        )
    return matches[0] if matches else None


def extract_cell(sheet: Sheet, column_id: Optional[int] = None) -> ResolvedCell:
    """Build a ResolvedCell from a sheet read filtered to one row and one column."""
    if not sheet.rows:
        raise CellResolutionError("source sheet returned no rows for the changed cell")
    row = sheet.rows[0]

    cells = row.cells
    if column_id is not None:
        cells = [c for c in cells if c.column_id == column_id] or cells
    if not cells:
        raise CellResolutionError(f"row {row.id} returned no cells")
    cell = cells[0]

    column = next((c for c in sheet.columns if c.id == cell.column_id), None)
    if column is None:
        raise CellResolutionError(f"column {cell.column_id} missing from source column listing")

    return ResolvedCell(
        # empty display value means an empty cell
        value=cell.display_value or None,
        column=ResolvedColumn(id=column.id, title=column.title),
        row=ResolvedRow(id=row.id, row_number=row.row_number),
    )


class ChangeRelay:
    """Pipeline from a source-sheet event batch to destination-sheet writes.

    Holds the shared gateway and the destination sheet id; no per-request
    state is kept, so one instance serves every concurrent callback.
    """

    def __init__(self, gateway: SmartsheetGateway, destination_sheet_id: int):
        self.gateway = gateway
        self.destination_sheet_id = destination_sheet_id

    # =========================================================================
    # Event Resolver
    # =========================================================================

    async def process_events(self, batch: EventBatch) -> RelaySummary:
        summary = RelaySummary(events=len(batch.events))

        if batch.scope != "sheet":
            logger.info(f"Ignoring batch with scope {batch.scope!r}")
            return summary
        if batch.scope_object_id is None:
            logger.warning("Sheet batch without scopeObjectId, nothing to resolve against")
            return summary

        for event in batch.events:
            if not event.is_cell_change:
                continue
            summary.cell_events += 1

            if event.row_id is None or event.column_id is None:
                logger.warning(f"Cell event without rowId/columnId, skipping: {event.model_dump(by_alias=True)}")
                summary.failed += 1
                continue

            logger.info(f"Cell changed, Row ID: {event.row_id}, Column ID: {event.column_id}")

            try:
                cell = await self.resolve_cell(batch.scope_object_id, event)
            except (SmartsheetError, CellResolutionError):
                logger.exception(f"❌ Error processing event for row {event.row_id}, column {event.column_id}")
                summary.failed += 1
                continue

            logger.info(
                f'Updated value: "{cell.value}" in column "{cell.column.title}", row number {cell.row.row_number}'
            )

            outcome = await self.sync_cell(cell)
            if outcome is True:
                summary.synced += 1
            elif outcome is None:
                summary.skipped += 1
            else:
                summary.failed += 1

        logger.info(
            f"Batch done: {summary.cell_events} cell event(s), {summary.synced} synced, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    async def resolve_cell(self, sheet_id: int, event: ChangeEvent) -> ResolvedCell:
        """Read just the changed row/column of the source sheet."""
        sheet = await self.gateway.get_sheet(
            sheet_id,
            row_ids=[event.row_id],
            column_ids=[event.column_id],
        )
        return extract_cell(sheet, event.column_id)

    # =========================================================================
    # Destination Locator
    # =========================================================================

    async def locate_destination(self, cell: ResolvedCell) -> Optional[DestinationTarget]:
        """Match the source column title and row number on the destination sheet.

        Returns None when either has no counterpart. Raises SmartsheetError if
        the destination sheet cannot be read.
        """
        sheet = await self.gateway.get_sheet(self.destination_sheet_id)

        column = _first_match(sheet.columns, lambda c: c.title == cell.column.title, f'columns titled "{cell.column.title}"')
        if column is None:
            logger.info(f'Column "{cell.column.title}" not found in destination sheet.')
            return None

        row = _first_match(sheet.rows, lambda r: r.row_number == cell.row.row_number, f"rows numbered {cell.row.row_number}")
        if row is None:
            logger.info(f"Row {cell.row.row_number} not found in destination sheet.")
            return None

        return DestinationTarget(row_id=row.id, column_id=column.id)

    # =========================================================================
    # Mutation Applier
    # =========================================================================

    async def apply_mutation(self, target: DestinationTarget, value: Optional[str]) -> bool:
        """Write one cell. None is sent as an explicit null so the cell is cleared."""
        cells = [{"columnId": target.column_id, "value": value if value else None}]
        try:
            await self.gateway.update_row(self.destination_sheet_id, target.row_id, cells)
        except SmartsheetError:
            logger.exception(f"❌ Error updating row {target.row_id} in destination sheet")
            return False

        logger.info(f"✅ Updated row in destination sheet with value: {value}")
        return True

    async def sync_cell(self, cell: ResolvedCell) -> Optional[bool]:
        """Locate and write one resolved cell.

        Returns True on a write, None when there was nothing to write to,
        False on a failed read or write.
        """
        try:
            target = await self.locate_destination(cell)
        except SmartsheetError:
            logger.exception("❌ Error syncing data to destination sheet")
            return False

        if target is None:
            return None
        return await self.apply_mutation(target, cell.value)
