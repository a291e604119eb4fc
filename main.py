import logging
from datetime import date, timedelta
from typing import List
from uuid import UUID

import redis.asyncio as redis
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Reservations
    CreateReservationRequest, CreateReservationResponse, ReservationStatusResponse,
    AdminReservationResponse, AdminOverviewResponse, ReservationStatsResponse,
    # Locations & availability
    LocationResponse, AvailabilityResponse,
    # Webhook
    WebhookAcknowledgement,
    # Auth
    Token
)
from api.dependencies import (
    get_current_active_user, get_admin_users, get_user, enforce_booking_rate_limit
)
from application.services import AvailabilityService, ReservationService
from domain.auth import AdminUser
from domain.entities import Reservation
from domain.enums import Location
from domain.exceptions import (
    PaymentGatewayError, RepositoryError, WebhookConfigurationError, WebhookSignatureError
)
from domain.payments import PaymentGateway
from domain.repositories import ReservationRepository
from domain.value_objects import Money
from infrastructure.config import get_settings
from infrastructure.database import get_engine, init_models
from infrastructure.log_config import configure_logging
from infrastructure.payments.stripe_gateway import StripeCheckoutGateway
from infrastructure.rate_limit import FixedWindowRateLimiter, RedisRateLimiter
from infrastructure.repositories.in_memory_repositories import InMemoryReservationRepository
from infrastructure.repositories.sqlalchemy_repositories import SqlAlchemyReservationRepository
from infrastructure.security import verify_password, create_access_token

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Staysville Parking API",
    description="Parking reservations with hosted checkout and webhook confirmation",
    version="1.0.0"
)

# Initialize infrastructure
engine = get_engine(settings.database_url) if settings.database_url else None
reservation_repo: ReservationRepository = (
    SqlAlchemyReservationRepository(engine) if engine is not None
    else InMemoryReservationRepository()
)
payment_gateway = StripeCheckoutGateway(
    api_key=settings.stripe_secret_key,
    webhook_secret=settings.stripe_webhook_secret,
    public_base_url=settings.public_base_url,
    session_expiry_minutes=settings.pending_hold_minutes,
    timeout_seconds=settings.checkout_timeout_seconds,
    max_network_retries=settings.checkout_max_network_retries,
)
# A pending reservation keeps its space for as long as its checkout can be paid
pending_hold = payment_gateway.payable_window() if settings.pending_hold_minutes else timedelta(0)

redis_client = redis.from_url(settings.redis_url, decode_responses=True) if settings.redis_url else None
if redis_client is not None:
    app.state.booking_rate_limiter = RedisRateLimiter(
        redis_client,
        limit=settings.booking_rate_limit,
        window_seconds=settings.booking_rate_window_seconds,
    )
else:
    app.state.booking_rate_limiter = FixedWindowRateLimiter(
        limit=settings.booking_rate_limit,
        window_seconds=settings.booking_rate_window_seconds,
    )


@app.on_event("startup")
async def startup():
    if engine is not None:
        await init_models(engine)
        logger.info("Reservation store ready (%s)", engine.dialect.name)
    else:
        logger.warning("DATABASE_URL not set; reservations are kept in memory")


@app.on_event("shutdown")
async def shutdown():
    if engine is not None:
        await engine.dispose()
    if redis_client is not None:
        await redis_client.aclose()


# Dependency injection
def get_availability_service() -> AvailabilityService:
    return AvailabilityService(reservation_repo, pending_hold=pending_hold)


def get_payment_gateway() -> PaymentGateway:
    return payment_gateway


def get_reservation_service(
    availability_service: AvailabilityService = Depends(get_availability_service),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> ReservationService:
    return ReservationService(
        reservation_repo,
        availability_service,
        gateway,
        nightly_rate=Money(amount=settings.nightly_rate, currency=settings.currency)
    )


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError):
    logger.error(
        "Storage error on %s %s", request.method, request.url.path,
        exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# HEALTH & REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}


@app.get("/api/locations", response_model=List[LocationResponse], tags=["Locations"])
async def list_locations():
    """Bookable locations with their capacity and nightly rate"""
    return [
        LocationResponse(
            key=location.value,
            name=location.display_name,
            capacity=location.capacity,
            nightly_rate=settings.nightly_rate,
            currency=settings.currency
        )
        for location in Location
    ]


@app.get("/api/availability", response_model=AvailabilityResponse, tags=["Locations"])
async def check_availability(
    location: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    service: AvailabilityService = Depends(get_availability_service)
):
    """Whether one more car fits at location for the date range"""
    if not Location.is_valid(location):
        raise HTTPException(status_code=400, detail="Invalid location")
    if end_date <= start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    available = await service.has_capacity(Location(location), start_date, end_date)
    return AvailabilityResponse(
        location=location, start_date=start_date, end_date=end_date, available=available
    )


# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    admin_users: dict = Depends(get_admin_users)
):
    user = get_user(admin_users, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning("Failed admin login for %r", form_data.username)
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes)
    )
    return {"access_token": access_token, "token_type": "bearer"}


# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post(
    "/api/booking",
    response_model=CreateReservationResponse,
    status_code=201,
    tags=["Reservations"],
    dependencies=[Depends(enforce_booking_rate_limit)]
)
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Create a pending reservation and return the checkout URL"""
    try:
        created = await service.create_reservation(
            full_name=request.full_name,
            email=request.email,
            start_date=request.start_date,
            end_date=request.end_date,
            location=request.location,
            license_plate=request.license_plate,
            no_license_plate=request.no_license_plate
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))

    reservation = created.reservation
    return CreateReservationResponse(
        reservation_id=reservation.reservation_id,
        session_id=reservation.checkout_session_id,
        url=created.payment_url,
        status=reservation.status.value,
        nights=reservation.get_nights(),
        total_price=reservation.total_price.amount,
        currency=reservation.total_price.currency
    )


@app.get("/api/reservations/{reservation_id}", response_model=ReservationStatusResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service)
):
    """Get reservation status by ID"""
    reservation = await service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_status_response(reservation)


# ============================================================================
# PAYMENT WEBHOOK
# ============================================================================

@app.post("/api/webhook", response_model=WebhookAcknowledgement, tags=["Payments"])
async def payment_webhook(
    request: Request,
    service: ReservationService = Depends(get_reservation_service),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """Receive signed Stripe events; completes reservations on checkout.session.completed"""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = gateway.construct_event(payload, signature)
    except WebhookSignatureError as e:
        logger.error("Webhook rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    except WebhookConfigurationError as e:
        logger.error("Webhook cannot be verified: %s", e)
        raise HTTPException(status_code=503, detail="Webhook verification unavailable")

    await service.handle_payment_event(event)
    return WebhookAcknowledgement(received=True)


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================

@app.get("/api/admin/reservations", response_model=AdminOverviewResponse, tags=["Admin"])
async def get_admin_reservations(
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """All reservations, newest first, with aggregate counts"""
    overview = await service.get_admin_overview()
    return AdminOverviewResponse(
        reservations=[_reservation_to_admin_response(r) for r in overview.reservations],
        stats=ReservationStatsResponse(**overview.stats.model_dump())
    )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _reservation_to_status_response(reservation: Reservation) -> ReservationStatusResponse:
    return ReservationStatusResponse(
        reservation_id=reservation.reservation_id,
        status=reservation.status.value,
        location=reservation.location.value,
        location_name=reservation.location.display_name,
        start_date=reservation.start_date,
        end_date=reservation.end_date,
        nights=reservation.get_nights(),
        total_price=reservation.total_price.amount,
        currency=reservation.total_price.currency
    )


def _reservation_to_admin_response(reservation: Reservation) -> AdminReservationResponse:
    """Convert Reservation entity to the admin listing row, masking the plate"""
    return AdminReservationResponse(
        reservation_id=reservation.reservation_id,
        full_name=reservation.full_name,
        email=reservation.email,
        start_date=reservation.start_date,
        end_date=reservation.end_date,
        license_plate=reservation.vehicle.masked_plate(),
        no_license_plate=reservation.vehicle.no_license_plate,
        location=reservation.location.value,
        total_price=reservation.total_price.amount,
        currency=reservation.total_price.currency,
        payment_reference=reservation.payment_reference,
        checkout_session_id=reservation.checkout_session_id,
        status=reservation.status.value,
        created_at=reservation.created_at
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
