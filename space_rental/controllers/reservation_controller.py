"""HTTP controller layer for reservation submission and payment confirmation."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from space_rental.controllers.dependencies import get_reservation_service
from space_rental.domain.models import DocumentUpload, ReservationForm
from space_rental.services.calendar_service import CalendarError
from space_rental.services.reservation_service import (
    AlreadyConfirmedError,
    LockTimeoutError,
    ReservationConflictError,
    ReservationNotFoundError,
    ReservationWorkflowService,
)
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["reservations"])

# Submission failures keep the result body; only the status code varies.
SUBMISSION_STATUS_CODES: dict[str, int] = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "upload_too_large": status.HTTP_413_CONTENT_TOO_LARGE,
    "upload_failed": status.HTTP_502_BAD_GATEWAY,
    "busy": status.HTTP_503_SERVICE_UNAVAILABLE,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "capacity_reached": status.HTTP_503_SERVICE_UNAVAILABLE,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class DocumentPayload(BaseModel):
    content_base64: str = ""
    mime_type: str = ""
    filename: str = ""


class SubmitReservationRequest(BaseModel):
    """Raw form payload; field rules are checked together by the service."""

    date: str = ""
    start_time: str = ""
    end_time: str = ""
    room: str = ""
    name: str = ""
    company: str = ""
    phone: str = ""
    email: str = ""
    headcount: Optional[int | str] = None
    vehicle_count: Optional[int | str] = 0
    tax_invoice: bool = False
    referral_source: str = ""
    activity: str = ""
    notes: str = ""
    document: Optional[DocumentPayload] = None

    def to_form(self) -> ReservationForm:
        document = None
        if self.document is not None:
            document = DocumentUpload(
                content_base64=self.document.content_base64,
                mime_type=self.document.mime_type,
                filename=self.document.filename,
            )
        return ReservationForm(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            room=self.room,
            name=self.name,
            company=self.company,
            phone=self.phone,
            email=self.email,
            headcount=self.headcount,
            vehicle_count=self.vehicle_count,
            tax_invoice=self.tax_invoice,
            referral_source=self.referral_source,
            activity=self.activity,
            notes=self.notes,
            document=document,
        )


class PriceBreakdownResponse(BaseModel):
    base_price: int = Field(ge=0)
    extra_person_fee: int = Field(ge=0)
    subtotal: int = Field(ge=0)
    vat: int = Field(ge=0)
    total: int = Field(ge=0)


class ConflictResponse(BaseModel):
    reservation_number: str
    date: str
    start_time: str
    end_time: str
    room: str


class SubmitReservationResponse(BaseModel):
    success: bool
    reservation_number: Optional[str] = None
    total_amount: Optional[int] = None
    price: Optional[PriceBreakdownResponse] = None
    message: str = ""
    error: str = ""
    errors: list[str] = Field(default_factory=list)
    conflicts: list[ConflictResponse] = Field(default_factory=list)


class ReservationResponse(BaseModel):
    reservation_number: str
    created_at: str
    date: str
    start_time: str
    end_time: str
    duration_hours: float = Field(gt=0.0)
    room: str
    name: str
    company: str
    headcount: int = Field(gt=0)
    vehicle_count: int = Field(ge=0)
    tax_invoice: bool
    base_price: int
    extra_person_fee: int
    subtotal: int
    vat: int
    total: int
    payment_confirmed: str = Field(pattern=r"^[YN]$")
    payment_confirmed_at: str
    document_url: str
    calendar_event_id: str
    notification_status: str


class ConfirmPaymentResponse(BaseModel):
    success: bool = True
    reservation_number: str
    calendar_event_id: str
    confirmed_at: str
    message: str


@router.post(
    "/reservations",
    response_model=SubmitReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_reservation(
    payload: SubmitReservationRequest,
    service: ReservationWorkflowService = Depends(get_reservation_service),
):
    """Runs in the threadpool; the service blocks on the submission lock."""
    result = service.submit(payload.to_form())
    response = SubmitReservationResponse(
        success=result.success,
        reservation_number=result.reservation_number,
        total_amount=result.total_amount,
        price=result.price.to_dict() if result.price is not None else None,
        message=result.message,
        error=result.error,
        errors=result.errors,
        conflicts=[conflict.to_dict() for conflict in result.conflicts],
    )
    if result.success:
        return response
    return JSONResponse(
        status_code=SUBMISSION_STATUS_CODES.get(
            result.error_code,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
        content=response.model_dump(),
    )


@router.get(
    "/reservations/{reservation_number}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
def get_reservation(
    reservation_number: str,
    service: ReservationWorkflowService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        reservation = service.get_reservation(reservation_number)
    except ReservationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return ReservationResponse(**reservation.to_dict())


@router.post(
    "/reservations/{reservation_number}/confirm_payment",
    response_model=ConfirmPaymentResponse,
    status_code=status.HTTP_200_OK,
)
def confirm_payment(
    reservation_number: str,
    service: ReservationWorkflowService = Depends(get_reservation_service),
) -> ConfirmPaymentResponse:
    try:
        result = service.confirm_payment(reservation_number)
    except ReservationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (AlreadyConfirmedError, ReservationConflictError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except LockTimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except CalendarError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Calendar event could not be created; payment was not confirmed",
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected confirmation failure for %s", reservation_number)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm payment",
        ) from exc
    return ConfirmPaymentResponse(
        reservation_number=result.reservation_number,
        calendar_event_id=result.calendar_event_id,
        confirmed_at=result.confirmed_at,
        message=result.message,
    )
