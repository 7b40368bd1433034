"""HTTP routes for appointments, helper days, and ledger corrections."""

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from cleanslate.domain.appointment import (
    Appointment,
    AppointmentStatus,
    ChecklistItem,
    HelperDay,
    StatusChangeResult,
)
from cleanslate.domain.create_models import AppointmentCreate
from cleanslate.domain.ledger import RevenueTransaction
from cleanslate.domain.update_models import AppointmentStatusUpdate, AppointmentUpdate, TransactionStatusUpdate
from cleanslate.interface.deps import get_owner_id
from cleanslate.modules.appointments import checklist, ledger
from cleanslate.modules.appointments import service as appointment_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])
helpers_router = APIRouter(prefix="/helpers", tags=["helpers"])
transactions_router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("/day", response_model=list[Appointment])
async def get_day(
    *,
    date: str = Query(..., description="Calendar day (yyyy-mm-dd)"),
    customer_id: str | None = None,
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    owner_id: str = Depends(get_owner_id),
) -> list[Appointment]:
    """List one day's appointments."""
    return await appointment_service.list_day(
        owner_id=owner_id,
        day=date,
        customer_id=customer_id,
        status=status_filter,
    )


@router.get("/today", response_model=list[Appointment])
async def get_today(owner_id: str = Depends(get_owner_id)) -> list[Appointment]:
    """List today's appointments."""
    return await appointment_service.list_today(owner_id=owner_id)


@router.get("/week", response_model=list[Appointment])
async def get_week(
    *,
    start_date: str = Query(..., description="First day of the week (yyyy-mm-dd)"),
    owner_id: str = Depends(get_owner_id),
) -> list[Appointment]:
    """List seven days starting at start_date."""
    return await appointment_service.list_week(owner_id=owner_id, start_date=start_date)


@router.get("/month", response_model=list[Appointment])
async def get_month(
    *,
    year: int = Query(...),
    month: int = Query(...),
    owner_id: str = Depends(get_owner_id),
) -> list[Appointment]:
    """List a calendar month."""
    return await appointment_service.list_month(owner_id=owner_id, year=year, month=month)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: str, owner_id: str = Depends(get_owner_id)) -> Appointment:
    """Get full appointment detail."""
    return await appointment_service.get_appointment(owner_id=owner_id, appointment_id=appointment_id)


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(payload: AppointmentCreate, owner_id: str = Depends(get_owner_id)) -> Appointment:
    """Create an appointment."""
    return await appointment_service.create_appointment(owner_id=owner_id, data=payload)


@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    owner_id: str = Depends(get_owner_id),
) -> Appointment:
    """Apply a partial update."""
    return await appointment_service.update_appointment(owner_id=owner_id, appointment_id=appointment_id, data=payload)


@router.patch("/{appointment_id}/status", response_model=StatusChangeResult)
async def patch_status(
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    owner_id: str = Depends(get_owner_id),
) -> StatusChangeResult:
    """Change status, optionally sending the invoice on completion."""
    return await appointment_service.set_status(
        owner_id=owner_id,
        appointment_id=appointment_id,
        status=payload.status,
        send_invoice=payload.send_invoice,
    )


@router.patch("/{appointment_id}/start", response_model=Appointment)
async def start_appointment(appointment_id: str, owner_id: str = Depends(get_owner_id)) -> Appointment:
    """Start an appointment."""
    return await appointment_service.start_appointment(owner_id=owner_id, appointment_id=appointment_id)


@router.patch("/{appointment_id}/finish", response_model=Appointment)
async def finish_appointment(appointment_id: str, owner_id: str = Depends(get_owner_id)) -> Appointment:
    """Finish an appointment."""
    return await appointment_service.finish_appointment(owner_id=owner_id, appointment_id=appointment_id)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(appointment_id: str, owner_id: str = Depends(get_owner_id)) -> Response:
    """Delete one appointment."""
    await appointment_service.delete_appointment(owner_id=owner_id, appointment_id=appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{appointment_id}/series", status_code=status.HTTP_204_NO_CONTENT)
async def delete_series(appointment_id: str, owner_id: str = Depends(get_owner_id)) -> Response:
    """Delete the whole series an appointment belongs to."""
    await appointment_service.delete_series(owner_id=owner_id, appointment_id=appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{appointment_id}/checklist/{item_id}/toggle", response_model=ChecklistItem)
async def toggle_checklist_item(
    appointment_id: str,
    item_id: str,
    owner_id: str = Depends(get_owner_id),
) -> ChecklistItem:
    """Flip a checklist item between done and not done."""
    appointment = await appointment_service.get_appointment(owner_id=owner_id, appointment_id=appointment_id)
    return await checklist.toggle_item(appointment_id=appointment.id, item_id=item_id, member_id=owner_id)


@helpers_router.get("/{helper_id}/day", response_model=HelperDay)
async def get_helper_day(
    *,
    helper_id: str,
    date: str = Query(..., description="Calendar day (yyyy-mm-dd)"),
    owner_id: str = Depends(get_owner_id),
) -> HelperDay:
    """A helper's appointments for one day with the day summary."""
    return await appointment_service.get_helper_day(owner_id=owner_id, helper_id=helper_id, day=date)


@transactions_router.patch("/{transaction_id}/status", response_model=RevenueTransaction)
async def patch_transaction_status(
    transaction_id: str,
    payload: TransactionStatusUpdate,
    owner_id: str = Depends(get_owner_id),
) -> RevenueTransaction:
    """Mark a ledger entry PAID or reopen it as PENDING."""
    return await ledger.set_transaction_status(
        owner_id=owner_id,
        transaction_id=transaction_id,
        status=payload.status,
    )
