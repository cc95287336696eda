"""
Pydantic schemas for the menu backend. Field names follow the JSON the web
client sends and expects (camelCase).
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


class SendOtpRequest(BaseModel):
    mobileNumber: Optional[str] = Field(default=None, max_length=32)


class VerifyOtpRequest(BaseModel):
    mobileNumber: Optional[str] = Field(default=None, max_length=32)
    otp: Optional[str] = Field(default=None, max_length=16)
    name: Optional[str] = Field(default=None, max_length=128)
    hotelName: Optional[str] = Field(default=None, max_length=128)


class DirectLoginRequest(BaseModel):
    mobileNumber: Optional[str] = Field(default=None, max_length=32)
    name: Optional[str] = Field(default=None, max_length=128)
    hotelName: Optional[str] = Field(default=None, max_length=128)


class PushKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionInfo(BaseModel):
    endpoint: str = Field(..., min_length=1)
    expirationTime: Optional[Union[float, str]] = None
    keys: PushKeys


class SubscribeRequest(BaseModel):
    hotelId: Optional[str] = None
    subscription: Optional[PushSubscriptionInfo] = None


class UnsubscribeRequest(BaseModel):
    hotelId: Optional[str] = None
    endpoint: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SendOtpResponse(MessageResponse):
    mockOtp: Optional[str] = None


class TokenResponse(MessageResponse):
    token: str


class Hotel(BaseModel):
    id: str
    mobileNumber: str
    name: str
    hotelName: str
    role: str
    createdAt: str


class Menu(BaseModel):
    id: str
    hotelId: str
    imageUrl: str
    note: str = ""
    date: str


class PublicMenu(Menu):
    hotelName: str = ""
    name: str = ""


class DashboardResponse(MessageResponse):
    hotel: Hotel
    todayMenu: Optional[Menu] = None


class MenuUploadResponse(MessageResponse):
    updated: bool
    storage: str
    menu: Menu


class MenuHistoryResponse(MessageResponse):
    menus: list[Menu]
    total: int
    page: int
    page_size: int


class PublicMenuListResponse(MessageResponse):
    menus: list[PublicMenu]
    total: int
    page: int
    page_size: int


class VapidKeyResponse(MessageResponse):
    publicKey: Optional[str] = None


class Subscription(BaseModel):
    id: str
    hotelId: str
    subscription: dict
    createdAt: str


class SubscribeResponse(MessageResponse):
    subscription: Subscription
