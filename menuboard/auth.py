"""
One-time codes, session tokens and the hotel-only route guard.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header

from menuboard.config import Settings, get_settings
from menuboard.db import HOTEL_ROLE, HotelRecord
from menuboard.errors import AuthError, ForbiddenError

JWT_ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "


def generate_otp() -> str:
    """Return a random 5 digit code."""
    return str(10000 + secrets.randbelow(90000))


@dataclass(frozen=True)
class HotelIdentity:
    hotel_id: str
    role: str


def issue_token(hotel: HotelRecord, settings: Settings) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expires_days)
    payload = {"hotelId": hotel.id, "role": hotel.role, "exp": expires}
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX) :]
    try:
        return jwt.decode(token.strip(), secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise AuthError("Token is not valid") from exc


def require_hotel(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> HotelIdentity:
    """FastAPI dependency: a valid token whose role is "hotel"."""
    if not authorization:
        raise AuthError()
    claims = decode_token(authorization, settings.jwt_secret)
    hotel_id = claims.get("hotelId")
    if not hotel_id:
        raise AuthError("Token is not valid")
    role = claims.get("role")
    if role != HOTEL_ROLE:
        raise ForbiddenError()
    return HotelIdentity(hotel_id=str(hotel_id), role=role)
