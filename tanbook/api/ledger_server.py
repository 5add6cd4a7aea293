"""
Ledger API Server.

A FastAPI-based document service holding reservations and wallets.
HttpReservationLedger and HttpWallet are its clients.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from tanbook.config import get_settings
from tanbook.models.booking import (
    DATE_PATTERN,
    TIME_PATTERN,
    NewReservation,
    Reservation,
    ReservationStatus,
    Sunbed,
)
from tanbook.models.wallet import WalletData
from tanbook.services.ledger import (
    InMemoryReservationLedger,
    ReservationConflictError,
    ReservationNotFoundError,
)
from tanbook.services.slot_grid import list_resources, list_slots
from tanbook.services.wallet import InMemoryWallet

# ============================================================================
# Data Models
# ============================================================================


class ReservationListResponse(BaseModel):
    """Response model for reservation queries."""

    reservations: List[Reservation]
    total: int


class ConflictResponse(BaseModel):
    """The confirmed reservation holding a slot, if any."""

    reservation: Optional[Reservation] = None


class InsertResponse(BaseModel):
    """Identifier assigned to a newly stored reservation."""

    id: str


class StatusUpdateRequest(BaseModel):
    """Request to move a reservation to another status."""

    status: ReservationStatus


class DeductRequest(BaseModel):
    """Request to consume prepaid hours."""

    hours: float = Field(gt=0, le=24)


class PurchaseRequest(BaseModel):
    """Request to record a purchase of prepaid hours."""

    hours: float = Field(gt=0)
    amount: float = Field(default=0.0, ge=0)


# ============================================================================
# In-Memory Stores
# ============================================================================

ledger = InMemoryReservationLedger()
wallets = InMemoryWallet()


# ============================================================================
# FastAPI Application
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Ledger API Server")
    yield
    logger.info(
        f"Shutting down Ledger API Server ({len(ledger.reservations)} reservations held)"
    )


app = FastAPI(
    title="Tanning Salon Ledger API",
    description="Reservation ledger and prepaid-hours wallets for the salon booking core",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/api/v1/sunbeds", response_model=List[Sunbed])
async def list_sunbeds():
    """List the sunbed catalog."""
    return list_resources()


@app.get("/api/v1/slots")
async def list_time_slots():
    """List the daily slot grid."""
    return {"slots": list_slots()}


@app.get("/api/v1/reservations/confirmed", response_model=ReservationListResponse)
async def find_confirmed(
    date: str = Query(..., pattern=DATE_PATTERN, description="Booking date"),
):
    """Confirmed reservations on a date."""
    reservations = await ledger.find_confirmed(date)
    return ReservationListResponse(reservations=reservations, total=len(reservations))


@app.get("/api/v1/reservations/conflict", response_model=ConflictResponse)
async def find_conflict(
    sunbed_id: str = Query(..., description="Sunbed identifier"),
    date: str = Query(..., pattern=DATE_PATTERN, description="Booking date"),
    time: str = Query(..., pattern=TIME_PATTERN, description="Slot start"),
):
    """The confirmed reservation holding a slot, if any."""
    return ConflictResponse(reservation=await ledger.find_conflict(sunbed_id, date, time))


@app.get("/api/v1/reservations", response_model=ReservationListResponse)
async def find_by_user(
    user_id: str = Query(..., min_length=1, description="Owning user"),
):
    """Every reservation owned by a user."""
    reservations = await ledger.find_by_user(user_id)
    return ReservationListResponse(reservations=reservations, total=len(reservations))


@app.get("/api/v1/reservations/{reservation_id}", response_model=Reservation)
async def get_reservation(reservation_id: str):
    """Get a specific reservation by ID."""
    reservation = await ledger.get(reservation_id)
    if not reservation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reservation not found",
        )
    return reservation


@app.post(
    "/api/v1/reservations",
    response_model=InsertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def insert_reservation(reservation: NewReservation):
    """
    Store a new reservation.

    Rejected with 409 when a confirmed reservation already holds the
    same sunbed, date and time.
    """
    try:
        reservation_id = await ledger.insert(reservation)
    except ReservationConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return InsertResponse(id=reservation_id)


@app.patch("/api/v1/reservations/{reservation_id}", response_model=Reservation)
async def update_reservation_status(reservation_id: str, request: StatusUpdateRequest):
    """Move a reservation to another status."""
    try:
        await ledger.update_status(reservation_id, request.status)
    except ReservationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReservationConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return await ledger.get(reservation_id)


@app.get("/api/v1/wallets/{user_id}", response_model=WalletData)
async def get_wallet(user_id: str):
    """Get a user's wallet, creating it on first access."""
    return await wallets.get_wallet(user_id)


@app.post("/api/v1/wallets/{user_id}/deduct", response_model=WalletData)
async def deduct_hours(user_id: str, request: DeductRequest):
    """Consume prepaid hours."""
    return await wallets.deduct_hours(user_id, request.hours)


@app.post("/api/v1/wallets/{user_id}/purchases", response_model=WalletData)
async def add_purchase(user_id: str, request: PurchaseRequest):
    """Record a purchase of prepaid hours."""
    return await wallets.add_hours(user_id, request.hours, request.amount)


# ============================================================================
# Run Server
# ============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the ledger API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tanbook.api.ledger_server:app",
        host=host or settings.ledger_server_host,
        port=port or settings.ledger_server_port,
        reload=False,
        workers=1,  # stores are in-process memory
        loop="uvloop",
        http="httptools",
    )


if __name__ == "__main__":
    run_server()
