from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from skyline.core.money import format_usd
from skyline.core.pagination import page, paginate
from skyline.deps import get_current_user, get_notifier, parse_object_id, require_admin
from skyline.models.booking import Booking
from skyline.models.user import User
from skyline.realtime.notifier import EventNotifier
from skyline.services import bookings as bookings_service

router = APIRouter()


class BookingCreate(BaseModel):
    celebrity_id: str
    event_date: datetime | None = None
    event_details: str | None = Field(default=None, max_length=5000)


class BookingStatusUpdate(BaseModel):
    status: Literal["pending", "confirmed", "completed", "cancelled"]


def booking_out(b: Booking) -> dict:
    return {
        "id": str(b.id),
        "user_id": str(b.user_id),
        "celebrity_id": str(b.celebrity_id),
        "price_usd": format_usd(b.price_cents),
        "status": b.status,
        "event_date": b.event_date.isoformat() if b.event_date else None,
        "event_details": b.event_details,
        "created_at": b.created_at.isoformat(),
    }


@router.get("")
async def bookings_list(
    user: User = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Own bookings (all bookings for admins), newest first."""
    limit, offset = paginate(limit, offset)
    items = await bookings_service.list_bookings(user, limit=limit, offset=offset)
    return page("bookings", map(booking_out, items), limit, offset)


@router.post("", status_code=201)
async def booking_create(
    body: BookingCreate,
    user: User = Depends(get_current_user),
    notifier: EventNotifier = Depends(get_notifier),
):
    """Book a celebrity at the current price; debits the wallet atomically."""
    booking = await bookings_service.create_booking(
        user.id,
        parse_object_id(body.celebrity_id, "Celebrity"),
        event_date=body.event_date,
        event_details=body.event_details,
        notifier=notifier,
    )
    return booking_out(booking)


@router.get("/{booking_id}")
async def booking_get(booking_id: str, user: User = Depends(get_current_user)):
    booking = await bookings_service.get_booking(parse_object_id(booking_id, "Booking"), user)
    return booking_out(booking)


@router.patch("/{booking_id}/status")
async def booking_status_update(
    booking_id: str,
    body: BookingStatusUpdate,
    admin: User = Depends(require_admin),
    notifier: EventNotifier = Depends(get_notifier),
):
    """Admin: change status. Cancelling a pending booking refunds its price."""
    booking = await bookings_service.set_booking_status(
        parse_object_id(booking_id, "Booking"),
        body.status,
        admin,
        notifier=notifier,
    )
    return booking_out(booking)
