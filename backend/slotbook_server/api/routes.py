"""
API routes for the Slotbook HTTP server.

Every route resolves the caller's user id through the identity dependency,
then talks to the ledgers held on ``app.state``:
- Mutations go through the MutationCoordinator
- Reads go straight to the relevant ledger

Error bodies are ``{"message": "..."}``. NotFoundError maps to 404 and the
identity errors to 401/403; every other failure is a 400 carrying the raw
error message.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..errors import SlotbookError
from ..ledger import AvailabilityLedger, MutationCoordinator, MutationResult, NotificationLedger
from ..ledger.policies import parse_index_lenient
from .auth import get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Slotbook"])


# --- Request Models ---


class AvailabilityCreateRequest(BaseModel):
    """Request to add an availability entry to a date."""

    date: str = Field(..., description="Calendar day the entry belongs to")
    availability: Any = Field(..., description="Opaque availability entry")


class AvailabilityUpdateRequest(BaseModel):
    """Request to replace an availability entry."""

    availability: Any = Field(..., description="Replacement availability entry")


# --- Dependencies ---


def get_coordinator(request: Request) -> MutationCoordinator:
    """Get mutation coordinator from app state."""
    return request.app.state.coordinator


def get_availability(request: Request) -> AvailabilityLedger:
    """Get availability ledger from app state."""
    return request.app.state.availability


def get_notifications(request: Request) -> NotificationLedger:
    """Get notification ledger from app state."""
    return request.app.state.notifications


def fail_closed(
    handler: Callable[..., Awaitable[Any]],
) -> Callable[..., Awaitable[Any]]:
    """Report unexpected handler errors as 400 with the raw message.

    SlotbookError is re-raised for the application's exception handler.
    """

    @functools.wraps(handler)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await handler(*args, **kwargs)
        except SlotbookError:
            raise
        except Exception as e:
            logger.error(f"Unhandled error in {handler.__name__}: {e}", exc_info=True)
            return JSONResponse(status_code=400, content={"message": str(e)})

    return wrapper


def _log_dropped_notification(result: MutationResult) -> None:
    if not result.notified:
        logger.info(
            "Availability changed without notification",
            extra={
                "user_id": result.user_id,
                "date": result.date,
                "operation": result.operation,
                "error": result.notification_error,
            },
        )


# --- Availability Routes ---


@router.post("/availability")
@fail_closed
async def add_availability(
    body: AvailabilityCreateRequest,
    user_id: str = Depends(get_user_id),
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """Append an entry to a date, creating the date's list if needed."""
    result = await coordinator.append(user_id, body.date, body.availability)
    _log_dropped_notification(result)
    return {"message": "Availability added successfully"}


@router.get("/availability")
@fail_closed
async def list_dates(
    user_id: str = Depends(get_user_id),
    availability: AvailabilityLedger = Depends(get_availability),
):
    """Dates that currently have at least one entry."""
    dates = await availability.list_dates_with_availability(user_id)
    return {"data": dates}


@router.get("/availability/{date}")
@fail_closed
async def get_availability_for_date(
    date: str,
    user_id: str = Depends(get_user_id),
    availability: AvailabilityLedger = Depends(get_availability),
):
    """Entries for one date, in insertion order."""
    entries = await availability.get(user_id, date)
    return {"data": entries}


@router.put("/availability/{date}")
@fail_closed
async def update_availability(
    date: str,
    body: AvailabilityUpdateRequest,
    index: int = Query(..., description="Position of the entry to replace"),
    user_id: str = Depends(get_user_id),
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """Replace the entry at ``index``."""
    result = await coordinator.update_at(user_id, date, index, body.availability)
    _log_dropped_notification(result)
    return {"message": "Availability updated successfully"}


@router.delete("/availability/delete/{date}")
@fail_closed
async def delete_availability_entry(
    date: str,
    availability_id: str | None = Query(
        None, alias="availabilityId", description="Position of the entry to remove"
    ),
    user_id: str = Depends(get_user_id),
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """Remove the entry at ``availabilityId``.

    The position is read leniently (leading integer only). A missing,
    unparseable or out-of-range position removes nothing and still succeeds.
    """
    index = parse_index_lenient(availability_id)
    result = await coordinator.delete_at(user_id, date, index)
    _log_dropped_notification(result)
    return {"message": "Availability deleted successfully"}


@router.delete("/availability/{date}")
@fail_closed
async def delete_availability_date(
    date: str,
    user_id: str = Depends(get_user_id),
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """Remove every entry for a date."""
    result = await coordinator.delete_date(user_id, date)
    _log_dropped_notification(result)
    return {"message": "Availability deleted successfully"}


# --- Notification Routes ---


@router.get("/notifications")
@fail_closed
async def list_notifications(
    user_id: str = Depends(get_user_id),
    notifications: NotificationLedger = Depends(get_notifications),
):
    """The caller's notification log, most recent first."""
    records = await notifications.list(user_id)
    return {"data": [record.to_dict() for record in records]}
