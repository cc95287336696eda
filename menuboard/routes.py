"""
HTTP routes for the menu backend.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    Query,
    Request,
    UploadFile,
)
from starlette.concurrency import run_in_threadpool

from menuboard.auth import HotelIdentity, generate_otp, issue_token, require_hotel
from menuboard.config import Settings, get_settings
from menuboard.db import DbClient, MenuWithHotel
from menuboard.dependencies import (
    get_db_client,
    get_media_store,
    get_push_transport,
    get_queue_client,
    get_rate_limiter,
    get_sms_relay,
)
from menuboard.errors import (
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from menuboard.menus import menu_day_for, publish_menu, todays_menu
from menuboard.notifications import dispatch_menu_notification
from menuboard.push import PushTransport
from menuboard.queue import JobQueue
from menuboard.ratelimit import RateLimiter
from menuboard.schemas import (
    DashboardResponse,
    DirectLoginRequest,
    MenuHistoryResponse,
    MenuUploadResponse,
    MessageResponse,
    PublicMenuListResponse,
    SendOtpRequest,
    SendOtpResponse,
    SubscribeRequest,
    SubscribeResponse,
    TokenResponse,
    UnsubscribeRequest,
    VapidKeyResponse,
    VerifyOtpRequest,
)
from menuboard.sms import LoggingSmsRelay, SmsRelay
from menuboard.storage import MediaStore

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PAGE_SIZE = 25


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _public_menus(rows: list[MenuWithHotel]) -> list[dict]:
    menus = []
    for menu, hotel in rows:
        item = menu.as_dict()
        item["hotelName"] = hotel.hotel_name if hotel else ""
        item["name"] = hotel.name if hotel else ""
        menus.append(item)
    return menus


# ----------------------------------------------------------------- auth


@router.post(
    "/auth/send-otp",
    response_model=SendOtpResponse,
    response_model_exclude_none=True,
)
def send_otp(
    payload: SendOtpRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
    sms: SmsRelay = Depends(get_sms_relay),
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
):
    retry_after = limiter.hit(f"send-otp:{_client_ip(request)}")
    if retry_after:
        minutes = max(1, settings.otp_rate_window_seconds // 60)
        raise RateLimitError(
            f"Too many requests from this IP, please try again after {minutes} minutes",
            retry_after=retry_after,
        )

    mobile_number = _clean(payload.mobileNumber)
    if not mobile_number:
        raise ValidationError("Mobile number is required")

    code = generate_otp()
    db.save_otp(mobile_number, code)
    sms.send_code(mobile_number, code)

    # Without a gateway the code is echoed back so the app stays usable in dev.
    mock_otp = code if isinstance(sms, LoggingSmsRelay) else None
    return SendOtpResponse(message="OTP sent successfully", mockOtp=mock_otp)


@router.post("/auth/verify-otp", response_model=TokenResponse)
def verify_otp(
    payload: VerifyOtpRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    mobile_number = _clean(payload.mobileNumber)
    code = _clean(payload.otp)
    if not mobile_number or not code:
        raise ValidationError("Mobile number and OTP are required")

    if not db.consume_otp(mobile_number, code, settings.otp_ttl_seconds):
        raise ValidationError("Invalid or expired OTP")

    hotel = db.upsert_hotel(
        mobile_number, name=payload.name, hotel_name=payload.hotelName
    )
    return TokenResponse(
        message="OTP verified successfully", token=issue_token(hotel, settings)
    )


@router.post("/auth/direct-login", response_model=TokenResponse)
def direct_login(
    payload: DirectLoginRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    if not settings.allow_direct_login:
        raise ForbiddenError("Direct login is disabled")

    mobile_number = _clean(payload.mobileNumber)
    if not mobile_number:
        raise ValidationError("Mobile number is required")

    hotel = db.upsert_hotel(
        mobile_number, name=payload.name, hotel_name=payload.hotelName
    )
    return TokenResponse(message="Login successful", token=issue_token(hotel, settings))


# ---------------------------------------------------------------- hotel


@router.get("/hotel/dashboard", response_model=DashboardResponse)
def dashboard(
    identity: HotelIdentity = Depends(require_hotel),
    db: DbClient = Depends(get_db_client),
):
    hotel = db.get_hotel(identity.hotel_id)
    if not hotel:
        raise NotFoundError("Hotel not found")
    today = todays_menu(db, hotel.id)
    return DashboardResponse(
        message="Dashboard loaded",
        hotel=hotel.as_dict(),
        todayMenu=today.as_dict() if today else None,
    )


# ----------------------------------------------------------------- menu


@router.post("/menu/upload", response_model=MenuUploadResponse)
async def upload_menu(
    background_tasks: BackgroundTasks,
    menuImage: Optional[UploadFile] = File(None),
    note: str = Form(""),
    identity: HotelIdentity = Depends(require_hotel),
    db: DbClient = Depends(get_db_client),
    media: MediaStore = Depends(get_media_store),
    queue: JobQueue = Depends(get_queue_client),
    transport: PushTransport = Depends(get_push_transport),
    settings: Settings = Depends(get_settings),
):
    if menuImage is None:
        raise ValidationError("No image provided")
    data = await menuImage.read()
    if not data:
        raise ValidationError("No image provided")

    if not await run_in_threadpool(db.get_hotel, identity.hotel_id):
        raise NotFoundError("Hotel not found")

    try:
        result = await run_in_threadpool(
            publish_menu,
            db,
            media,
            hotel_id=identity.hotel_id,
            data=data,
            content_type=menuImage.content_type,
            note=note,
            key_prefix=settings.media_prefix,
        )
    except ExternalServiceError as exc:
        logger.error("Menu upload for hotel %s failed: %s", identity.hotel_id, exc)
        raise ExternalServiceError("Server error during upload") from exc

    await run_in_threadpool(
        dispatch_menu_notification,
        identity.hotel_id,
        queue=queue,
        background_tasks=background_tasks,
        db=db,
        transport=transport,
    )
    return MenuUploadResponse(
        message=result.message,
        updated=result.updated,
        storage=result.storage,
        menu=result.menu.as_dict(),
    )


@router.get("/menu/history", response_model=MenuHistoryResponse)
def menu_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    identity: HotelIdentity = Depends(require_hotel),
    db: DbClient = Depends(get_db_client),
):
    offset = (page - 1) * page_size
    menus, total = db.list_hotel_menus(identity.hotel_id, limit=page_size, offset=offset)
    return MenuHistoryResponse(
        message="Menus retrieved successfully",
        menus=[menu.as_dict() for menu in menus],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/menu/today", response_model=PublicMenuListResponse)
def menus_today(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: DbClient = Depends(get_db_client),
):
    offset = (page - 1) * page_size
    rows, total = db.list_menus_for_day(
        menu_day_for(datetime.now()), limit=page_size, offset=offset
    )
    return PublicMenuListResponse(
        message="Today's menus retrieved successfully",
        menus=_public_menus(rows),
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/menu/latest", response_model=PublicMenuListResponse)
def menus_latest(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: DbClient = Depends(get_db_client),
):
    offset = (page - 1) * page_size
    rows, total = db.list_latest_menus(limit=page_size, offset=offset)
    return PublicMenuListResponse(
        message="Latest menus retrieved successfully",
        menus=_public_menus(rows),
        total=total,
        page=page,
        page_size=page_size,
    )


# ----------------------------------------------------------------- push


@router.get("/push/vapidPublicKey", response_model=VapidKeyResponse)
def vapid_public_key(settings: Settings = Depends(get_settings)):
    return VapidKeyResponse(message="ok", publicKey=settings.vapid_public_key)


@router.post("/push/subscribe", response_model=SubscribeResponse, status_code=201)
def subscribe(payload: SubscribeRequest, db: DbClient = Depends(get_db_client)):
    hotel_id = _clean(payload.hotelId)
    if not hotel_id or payload.subscription is None:
        raise ValidationError("hotelId and subscription are required")
    if not db.get_hotel(hotel_id):
        raise NotFoundError("Hotel not found")

    record = db.upsert_subscription(hotel_id, payload.subscription.model_dump())
    return SubscribeResponse(
        message="Subscribed successfully", subscription=record.as_dict()
    )


@router.post("/push/unsubscribe", response_model=MessageResponse)
def unsubscribe(payload: UnsubscribeRequest, db: DbClient = Depends(get_db_client)):
    hotel_id = _clean(payload.hotelId)
    endpoint = _clean(payload.endpoint)
    if not hotel_id or not endpoint:
        raise ValidationError("hotelId and endpoint are required")
    if not db.get_hotel(hotel_id):
        raise NotFoundError("Hotel not found")

    db.delete_subscription(hotel_id, endpoint)
    return MessageResponse(message="Unsubscribed successfully")
