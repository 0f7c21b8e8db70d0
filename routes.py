"""API and page routes for the receipt calendar"""
from datetime import date
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse, RedirectResponse
from motor.motor_asyncio import AsyncIOMotorCollection
import logging

from models.calendar import DaySlot, MonthRef, MonthView
from models.carousel import CarouselState, CarouselView, DayView, ReceiptMutationResult
from models.receipt import Receipt, ReceiptInput
from models.user import Credentials, SessionUser, SignupRequest
from services import auth_service, calendar_service, receipts_service
from services.auth_service import AuthError
from services.carousel import CarouselRegistry, ReceiptCarousel
from utils.rate_limit import LOGIN_RATE_LIMIT, limiter

router = APIRouter()
pages = APIRouter()
logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).resolve().parent / "public"

# --- Dependency Functions ---
def get_receipts_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB receipts collection from the request state."""
    collection = request.state.receipts_collection
    if collection is None:
        logger.error("Receipts collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection

def get_users_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB users collection from the request state."""
    collection = request.state.users_collection
    if collection is None:
        logger.error("Users collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection

def get_carousels(request: Request) -> CarouselRegistry:
    return request.state.carousels

def require_user(request: Request) -> SessionUser:
    """Dependency that rejects requests without a logged-in session."""
    user = auth_service.current_session_user(request.session)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    return user

# Type hints for the dependencies
ReceiptsCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_receipts_collection)]
UsersCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_users_collection)]
CarouselsDep = Annotated[CarouselRegistry, Depends(get_carousels)]
CurrentUserDep = Annotated[SessionUser, Depends(require_user)]

# --- Helpers ---

def _resolve_month(year: Optional[int], month: Optional[int]) -> Tuple[int, int]:
    """Fills in today's year/month and validates the zero-based month index."""
    today = date.today()
    year = today.year if year is None else year
    month = today.month - 1 if month is None else month
    try:
        calendar_service.first_weekday(year, month)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    return year, month

def _resolve_day(day: int, year: Optional[int], month: Optional[int]) -> Tuple[int, int, str]:
    year, month = _resolve_month(year, month)
    try:
        key = calendar_service.date_key(year, month, day)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    return year, month, key

async def _fetch_day(collection: AsyncIOMotorCollection, user: SessionUser, day_key: str) -> List[Receipt]:
    try:
        return await receipts_service.fetch_receipts_for_day(collection, user.id, day_key)
    except ConnectionError as ce:
        logger.error(f"Connection error fetching receipts for {day_key}: {ce}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {ce}")

async def _loaded_carousel(
    carousels: CarouselRegistry,
    collection: AsyncIOMotorCollection,
    user: SessionUser,
    day_key: str,
) -> ReceiptCarousel:
    """Returns the day's carousel, loading it from the store on first use."""
    carousel = carousels.get_or_create(user.id, day_key)
    if not carousel.loaded:
        carousel.load(await _fetch_day(collection, user, day_key))
    return carousel

def _day_view(year: int, month: int, day: int, day_key: str, carousel: ReceiptCarousel) -> DayView:
    return DayView(
        date=day_key,
        day=day,
        month=month,
        month_name=calendar_service.MONTH_NAMES[month],
        year=year,
        carousel=carousel.snapshot(),
    )

# --- Auth Routes ---

@router.post("/auth/signup", response_model=SessionUser, summary="Sign Up", description="Creates an account. The user logs in afterwards.")
@limiter.limit(LOGIN_RATE_LIMIT)
async def signup(request: Request, users: UsersCollectionDep, payload: Annotated[SignupRequest, Body(...)]) -> SessionUser:
    logger.info(f"POST /auth/signup called for {payload.email}")
    try:
        return await auth_service.sign_up(users, payload.email, payload.password, payload.name)
    except AuthError as ae:
        raise HTTPException(status_code=400, detail=str(ae))
    except ConnectionError as ce:
        raise HTTPException(status_code=503, detail=str(ce))

@router.post("/auth/login", response_model=SessionUser, summary="Log In", description="Checks email and password and starts a cookie session.")
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(request: Request, users: UsersCollectionDep, credentials: Annotated[Credentials, Body(...)]) -> SessionUser:
    logger.info(f"POST /auth/login called for {credentials.email}")
    try:
        user = await auth_service.authenticate(users, credentials.email, credentials.password)
    except AuthError as ae:
        raise HTTPException(status_code=401, detail=str(ae))
    except ConnectionError as ce:
        raise HTTPException(status_code=503, detail=str(ce))
    auth_service.start_session(request.session, user)
    return user

@router.post("/auth/logout", summary="Log Out")
async def logout(request: Request, carousels: CarouselsDep):
    user = auth_service.end_session(request.session)
    if user is not None:
        dropped = carousels.discard_user(user.id)
        logger.info(f"User {user.email} logged out, dropped {dropped} cached carousels.")
    return {"status": "success"}

@router.get("/auth/session", response_model=SessionUser, summary="Current Session")
async def get_session(user: CurrentUserDep) -> SessionUser:
    return user

# --- Calendar Route ---

@router.get("/calendar", response_model=MonthView, summary="Month View", description="Month grid with per-day receipt counts and the month total.")
async def get_calendar(
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    year: Optional[int] = Query(None, description="Calendar year; defaults to the current year."),
    month: Optional[int] = Query(None, description="Zero-based month index; defaults to the current month."),
) -> MonthView:
    year, month = _resolve_month(year, month)
    logger.info(f"GET /calendar called for {calendar_service.MONTH_NAMES[month]} {year} by {user.email}")
    first_key, last_key = calendar_service.month_bounds(year, month)
    try:
        receipts = await receipts_service.fetch_receipts_for_month(collection, user.id, first_key, last_key)
    except ConnectionError as ce:
        logger.error(f"Connection error fetching month {first_key}: {ce}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {ce}")

    counts, total = calendar_service.aggregate_month(r.model_dump() for r in receipts)
    slots = [
        DaySlot(day=cell, count=counts.get(cell, 0) if cell else 0)
        for cell in calendar_service.build_month_grid(year, month)
    ]
    prev_year, prev_month = calendar_service.shift_month(year, month, -1)
    next_year, next_month = calendar_service.shift_month(year, month, 1)
    return MonthView(
        year=year,
        month=month,
        month_name=calendar_service.MONTH_NAMES[month],
        slots=slots,
        total=total,
        receipt_count=len(receipts),
        prev=MonthRef(year=prev_year, month=prev_month),
        next=MonthRef(year=next_year, month=next_month),
    )

# --- Day Routes ---

@router.get("/days/{day}", response_model=DayView, summary="Day View", description="Loads the day's receipts (oldest first) into the carousel.")
async def get_day(
    day: int,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> DayView:
    year, month, day_key = _resolve_day(day, year, month)
    logger.info(f"GET /days/{day} called for {day_key} by {user.email}")
    receipts = await _fetch_day(collection, user, day_key)
    carousel = carousels.get_or_create(user.id, day_key)
    carousel.load(receipts)
    return _day_view(year, month, day, day_key, carousel)

@router.post("/days/{day}/receipts", response_model=ReceiptMutationResult, summary="Add Receipt")
async def add_receipt(
    day: int,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    data: Annotated[ReceiptInput, Body(...)],
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> ReceiptMutationResult:
    year, month, day_key = _resolve_day(day, year, month)
    logger.info(f"POST /days/{day}/receipts called for {day_key} by {user.email}")

    fields = receipts_service.validate_receipt_input(data)
    if fields is None:
        existing = carousels.get(user.id, day_key)
        snapshot = existing.snapshot() if existing else CarouselView(state=CarouselState.UNLOADED)
        return ReceiptMutationResult(status="ignored", message="Shop name and amount are required.", carousel=snapshot)

    carousel = await _loaded_carousel(carousels, collection, user, day_key)
    try:
        receipt = await receipts_service.insert_receipt(collection, user.id, day_key, fields)
    except ConnectionError as ce:
        logger.error(f"ConnectionError adding receipt on {day_key}: {ce}")
        raise HTTPException(status_code=503, detail=str(ce))
    carousel.add(receipt)
    return ReceiptMutationResult(status="added", receipt=receipt, carousel=carousel.snapshot())

@router.delete("/days/{day}/receipts/{receipt_id}", response_model=ReceiptMutationResult, summary="Delete Receipt")
async def delete_receipt(
    day: int,
    receipt_id: str,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> ReceiptMutationResult:
    year, month, day_key = _resolve_day(day, year, month)
    logger.warning(f"DELETE /days/{day}/receipts/{receipt_id} called for {day_key} by {user.email}")
    try:
        deleted = await receipts_service.delete_receipt(collection, user.id, day_key, receipt_id)
    except ConnectionError as ce:
        logger.error(f"ConnectionError deleting receipt {receipt_id}: {ce}")
        raise HTTPException(status_code=503, detail=str(ce))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Receipt {receipt_id} not found.")

    carousel = await _loaded_carousel(carousels, collection, user, day_key)
    removed = carousel.remove(receipt_id)
    return ReceiptMutationResult(status="deleted", receipt=removed, carousel=carousel.snapshot())

@router.post("/days/{day}/carousel/next", response_model=CarouselView, summary="Focus Next Receipt")
async def carousel_next(
    day: int,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> CarouselView:
    _, _, day_key = _resolve_day(day, year, month)
    carousel = await _loaded_carousel(carousels, collection, user, day_key)
    carousel.focus_next()
    return carousel.snapshot()

@router.post("/days/{day}/carousel/prev", response_model=CarouselView, summary="Focus Previous Receipt")
async def carousel_prev(
    day: int,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> CarouselView:
    _, _, day_key = _resolve_day(day, year, month)
    carousel = await _loaded_carousel(carousels, collection, user, day_key)
    carousel.focus_prev()
    return carousel.snapshot()

@router.post("/days/{day}/carousel/focus/{index}", response_model=CarouselView, summary="Focus Receipt")
async def carousel_focus(
    day: int,
    index: int,
    user: CurrentUserDep,
    collection: ReceiptsCollectionDep,
    carousels: CarouselsDep,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
) -> CarouselView:
    _, _, day_key = _resolve_day(day, year, month)
    carousel = await _loaded_carousel(carousels, collection, user, day_key)
    carousel.focus(index)
    return carousel.snapshot()

# --- Page Routes ---

def _page(name: str) -> FileResponse:
    return FileResponse(PUBLIC_DIR / name, media_type="text/html")

@pages.get("/", include_in_schema=False)
async def login_page(request: Request):
    if auth_service.current_session_user(request.session):
        return RedirectResponse("/calendar", status_code=303)
    return _page("index.html")

@pages.get("/signup", include_in_schema=False)
async def signup_page(request: Request):
    if auth_service.current_session_user(request.session):
        return RedirectResponse("/calendar", status_code=303)
    return _page("signup.html")

@pages.get("/calendar", include_in_schema=False)
async def calendar_page(request: Request):
    if not auth_service.current_session_user(request.session):
        return RedirectResponse("/", status_code=303)
    return _page("calendar.html")

@pages.get("/day/{day}", include_in_schema=False)
async def day_page(request: Request, day: int):
    if not auth_service.current_session_user(request.session):
        return RedirectResponse("/", status_code=303)
    return _page("day.html")
