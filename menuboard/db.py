"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

HOTEL_ROLE = "hotel"

MenuWithHotel = tuple["MenuRecord", Optional["HotelRecord"]]


class DbClient(Protocol):
    """Interface for database access."""

    def get_hotel(self, hotel_id: str) -> Optional["HotelRecord"]:
        ...

    def get_hotel_by_mobile(self, mobile_number: str) -> Optional["HotelRecord"]:
        ...

    def upsert_hotel(
        self,
        mobile_number: str,
        *,
        name: Optional[str] = None,
        hotel_name: Optional[str] = None,
    ) -> "HotelRecord":
        ...

    def save_otp(self, mobile_number: str, code: str) -> None:
        ...

    def consume_otp(self, mobile_number: str, code: str, ttl_seconds: float) -> bool:
        ...

    def purge_expired_otps(self, ttl_seconds: float) -> int:
        ...

    def get_latest_menu(self, hotel_id: str) -> Optional["MenuRecord"]:
        ...

    def upsert_menu_for_day(
        self,
        hotel_id: str,
        menu_day: str,
        *,
        image_url: str,
        note: str,
        date: float,
    ) -> tuple["MenuRecord", bool]:
        ...

    def list_hotel_menus(
        self, hotel_id: str, limit: int = 25, offset: int = 0
    ) -> tuple[list["MenuRecord"], int]:
        ...

    def list_menus_for_day(
        self, menu_day: str, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        ...

    def list_latest_menus(
        self, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        ...

    def upsert_subscription(
        self, hotel_id: str, subscription: dict
    ) -> "SubscriptionRecord":
        ...

    def delete_subscription(self, hotel_id: str, endpoint: str) -> bool:
        ...

    def delete_subscription_by_id(self, subscription_id: str) -> bool:
        ...

    def list_subscriptions(self, hotel_id: str) -> list["SubscriptionRecord"]:
        ...


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).isoformat()


@dataclass
class HotelRecord:
    id: str
    mobile_number: str
    name: str = ""
    hotel_name: str = ""
    role: str = HOTEL_ROLE
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "mobileNumber": self.mobile_number,
            "name": self.name,
            "hotelName": self.hotel_name,
            "role": self.role,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class OtpRecord:
    mobile_number: str
    code: str
    created_at: float = field(default_factory=lambda: time.time())

    def expired(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.created_at >= ttl_seconds


@dataclass
class MenuRecord:
    id: str
    hotel_id: str
    image_url: str
    menu_day: str
    note: str = ""
    date: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "hotelId": self.hotel_id,
            "imageUrl": self.image_url,
            "note": self.note,
            "date": _iso(self.date),
        }


@dataclass
class SubscriptionRecord:
    id: str
    hotel_id: str
    subscription: dict
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def endpoint(self) -> str:
        return self.subscription.get("endpoint", "")

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "hotelId": self.hotel_id,
            "subscription": self.subscription,
            "createdAt": _iso(self.created_at),
        }


def _page(items: list, limit: int, offset: int) -> list:
    return items[offset : offset + limit]


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.hotels: Dict[str, HotelRecord] = {}
        self.otps: Dict[str, OtpRecord] = {}
        self.menus: Dict[str, MenuRecord] = {}
        self.subscriptions: Dict[str, SubscriptionRecord] = {}

    def get_hotel(self, hotel_id: str) -> Optional[HotelRecord]:
        return self.hotels.get(hotel_id)

    def get_hotel_by_mobile(self, mobile_number: str) -> Optional[HotelRecord]:
        for hotel in self.hotels.values():
            if hotel.mobile_number == mobile_number:
                return hotel
        return None

    def upsert_hotel(
        self,
        mobile_number: str,
        *,
        name: Optional[str] = None,
        hotel_name: Optional[str] = None,
    ) -> HotelRecord:
        hotel = self.get_hotel_by_mobile(mobile_number)
        if hotel is None:
            hotel = HotelRecord(
                id=uuid.uuid4().hex,
                mobile_number=mobile_number,
                name=name or "",
                hotel_name=hotel_name or "",
            )
            self.hotels[hotel.id] = hotel
            return hotel
        if name:
            hotel.name = name
        if hotel_name:
            hotel.hotel_name = hotel_name
        return hotel

    def save_otp(self, mobile_number: str, code: str) -> None:
        self.otps[mobile_number] = OtpRecord(mobile_number=mobile_number, code=code)

    def consume_otp(self, mobile_number: str, code: str, ttl_seconds: float) -> bool:
        record = self.otps.get(mobile_number)
        if record is None or record.code != code or record.expired(ttl_seconds):
            return False
        del self.otps[mobile_number]
        return True

    def purge_expired_otps(self, ttl_seconds: float) -> int:
        expired = [
            mobile for mobile, record in self.otps.items() if record.expired(ttl_seconds)
        ]
        for mobile in expired:
            del self.otps[mobile]
        return len(expired)

    def get_latest_menu(self, hotel_id: str) -> Optional[MenuRecord]:
        menus = [m for m in self.menus.values() if m.hotel_id == hotel_id]
        if not menus:
            return None
        return max(menus, key=lambda m: m.date)

    def upsert_menu_for_day(
        self,
        hotel_id: str,
        menu_day: str,
        *,
        image_url: str,
        note: str,
        date: float,
    ) -> tuple[MenuRecord, bool]:
        for menu in self.menus.values():
            if menu.hotel_id == hotel_id and menu.menu_day == menu_day:
                menu.image_url = image_url
                menu.note = note
                return menu, True
        record = MenuRecord(
            id=uuid.uuid4().hex,
            hotel_id=hotel_id,
            image_url=image_url,
            note=note,
            menu_day=menu_day,
            date=date,
        )
        self.menus[record.id] = record
        return record, False

    def list_hotel_menus(
        self, hotel_id: str, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuRecord], int]:
        menus = sorted(
            (m for m in self.menus.values() if m.hotel_id == hotel_id),
            key=lambda m: m.date,
            reverse=True,
        )
        return _page(menus, limit, offset), len(menus)

    def list_menus_for_day(
        self, menu_day: str, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        menus = sorted(
            (m for m in self.menus.values() if m.menu_day == menu_day),
            key=lambda m: m.date,
            reverse=True,
        )
        rows = [(m, self.hotels.get(m.hotel_id)) for m in menus]
        return _page(rows, limit, offset), len(rows)

    def list_latest_menus(
        self, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        latest: Dict[str, MenuRecord] = {}
        for menu in self.menus.values():
            current = latest.get(menu.hotel_id)
            if current is None or menu.date > current.date:
                latest[menu.hotel_id] = menu
        menus = sorted(latest.values(), key=lambda m: m.date, reverse=True)
        rows = [(m, self.hotels.get(m.hotel_id)) for m in menus]
        return _page(rows, limit, offset), len(rows)

    def upsert_subscription(self, hotel_id: str, subscription: dict) -> SubscriptionRecord:
        endpoint = subscription.get("endpoint")
        for record in self.subscriptions.values():
            if record.hotel_id == hotel_id and record.endpoint == endpoint:
                record.subscription = subscription
                return record
        record = SubscriptionRecord(
            id=uuid.uuid4().hex, hotel_id=hotel_id, subscription=subscription
        )
        self.subscriptions[record.id] = record
        return record

    def delete_subscription(self, hotel_id: str, endpoint: str) -> bool:
        for record in list(self.subscriptions.values()):
            if record.hotel_id == hotel_id and record.endpoint == endpoint:
                del self.subscriptions[record.id]
                return True
        return False

    def delete_subscription_by_id(self, subscription_id: str) -> bool:
        return self.subscriptions.pop(subscription_id, None) is not None

    def list_subscriptions(self, hotel_id: str) -> list[SubscriptionRecord]:
        return [s for s in self.subscriptions.values() if s.hotel_id == hotel_id]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_hotel(row: "HotelRow") -> HotelRecord:
        return HotelRecord(
            id=row.id,
            mobile_number=row.mobile_number,
            name=row.name or "",
            hotel_name=row.hotel_name or "",
            role=row.role,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_menu(row: "MenuRow") -> MenuRecord:
        return MenuRecord(
            id=row.id,
            hotel_id=row.hotel_id,
            image_url=row.image_url,
            note=row.note or "",
            menu_day=row.menu_day,
            date=row.date,
        )

    @staticmethod
    def _to_subscription(row: "SubscriptionRow") -> SubscriptionRecord:
        return SubscriptionRecord(
            id=row.id,
            hotel_id=row.hotel_id,
            subscription=row.data,
            created_at=row.created_at,
        )

    def get_hotel(self, hotel_id: str) -> Optional[HotelRecord]:
        with self.Session() as session:
            row = session.get(HotelRow, hotel_id)
            return self._to_hotel(row) if row else None

    def get_hotel_by_mobile(self, mobile_number: str) -> Optional[HotelRecord]:
        with self.Session() as session:
            row = self._find_hotel(session, mobile_number)
            return self._to_hotel(row) if row else None

    def _find_hotel(self, session: Session, mobile_number: str):
        stmt = select(HotelRow).where(HotelRow.mobile_number == mobile_number)
        return session.execute(stmt).scalar_one_or_none()

    def upsert_hotel(
        self,
        mobile_number: str,
        *,
        name: Optional[str] = None,
        hotel_name: Optional[str] = None,
    ) -> HotelRecord:
        with self.Session() as session:
            row = self._find_hotel(session, mobile_number)
            if row is None:
                row = HotelRow(
                    id=uuid.uuid4().hex,
                    mobile_number=mobile_number,
                    name=name or "",
                    hotel_name=hotel_name or "",
                    role=HOTEL_ROLE,
                    created_at=time.time(),
                )
                session.add(row)
                try:
                    session.commit()
                    session.refresh(row)
                    return self._to_hotel(row)
                except IntegrityError:
                    # A concurrent login created the hotel first.
                    session.rollback()
                    row = self._find_hotel(session, mobile_number)
                    if row is None:
                        raise
            if name:
                row.name = name
            if hotel_name:
                row.hotel_name = hotel_name
            session.commit()
            session.refresh(row)
            return self._to_hotel(row)

    def save_otp(self, mobile_number: str, code: str) -> None:
        with self.Session() as session:
            row = session.get(OtpRow, mobile_number)
            if row:
                row.code = code
                row.created_at = time.time()
            else:
                session.add(
                    OtpRow(mobile_number=mobile_number, code=code, created_at=time.time())
                )
            session.commit()

    def consume_otp(self, mobile_number: str, code: str, ttl_seconds: float) -> bool:
        cutoff = time.time() - ttl_seconds
        with self.Session() as session:
            # Single statement so a code can only be consumed once.
            result = session.execute(
                delete(OtpRow).where(
                    OtpRow.mobile_number == mobile_number,
                    OtpRow.code == code,
                    OtpRow.created_at > cutoff,
                )
            )
            session.commit()
            return (result.rowcount or 0) > 0

    def purge_expired_otps(self, ttl_seconds: float) -> int:
        cutoff = time.time() - ttl_seconds
        with self.Session() as session:
            result = session.execute(delete(OtpRow).where(OtpRow.created_at <= cutoff))
            session.commit()
            return result.rowcount or 0

    def get_latest_menu(self, hotel_id: str) -> Optional[MenuRecord]:
        with self.Session() as session:
            stmt = (
                select(MenuRow)
                .where(MenuRow.hotel_id == hotel_id)
                .order_by(MenuRow.date.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_menu(row) if row else None

    def _find_menu(self, session: Session, hotel_id: str, menu_day: str):
        stmt = select(MenuRow).where(
            MenuRow.hotel_id == hotel_id, MenuRow.menu_day == menu_day
        )
        return session.execute(stmt).scalar_one_or_none()

    def upsert_menu_for_day(
        self,
        hotel_id: str,
        menu_day: str,
        *,
        image_url: str,
        note: str,
        date: float,
    ) -> tuple[MenuRecord, bool]:
        with self.Session() as session:
            row = self._find_menu(session, hotel_id, menu_day)
            if row is None:
                row = MenuRow(
                    id=uuid.uuid4().hex,
                    hotel_id=hotel_id,
                    image_url=image_url,
                    note=note,
                    menu_day=menu_day,
                    date=date,
                )
                session.add(row)
                try:
                    session.commit()
                    return self._to_menu(row), False
                except IntegrityError:
                    # A concurrent upload created today's row first.
                    session.rollback()
                    row = self._find_menu(session, hotel_id, menu_day)
                    if row is None:
                        raise
            row.image_url = image_url
            row.note = note
            session.commit()
            return self._to_menu(row), True

    def list_hotel_menus(
        self, hotel_id: str, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuRecord], int]:
        with self.Session() as session:
            total = session.scalar(
                select(func.count()).select_from(MenuRow).where(MenuRow.hotel_id == hotel_id)
            )
            stmt = (
                select(MenuRow)
                .where(MenuRow.hotel_id == hotel_id)
                .order_by(MenuRow.date.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_menu(row) for row in rows], total or 0

    def _menus_with_hotels(self, session: Session, stmt) -> list[MenuWithHotel]:
        results: list[MenuWithHotel] = []
        for menu_row, hotel_row in session.execute(stmt).all():
            hotel = self._to_hotel(hotel_row) if hotel_row else None
            results.append((self._to_menu(menu_row), hotel))
        return results

    def list_menus_for_day(
        self, menu_day: str, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        with self.Session() as session:
            total = session.scalar(
                select(func.count()).select_from(MenuRow).where(MenuRow.menu_day == menu_day)
            )
            stmt = (
                select(MenuRow, HotelRow)
                .outerjoin(HotelRow, HotelRow.id == MenuRow.hotel_id)
                .where(MenuRow.menu_day == menu_day)
                .order_by(MenuRow.date.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._menus_with_hotels(session, stmt), total or 0

    def list_latest_menus(
        self, limit: int = 25, offset: int = 0
    ) -> tuple[list[MenuWithHotel], int]:
        latest = (
            select(MenuRow.hotel_id, func.max(MenuRow.date).label("max_date"))
            .group_by(MenuRow.hotel_id)
            .subquery()
        )
        with self.Session() as session:
            total = session.scalar(select(func.count()).select_from(latest))
            stmt = (
                select(MenuRow, HotelRow)
                .join(
                    latest,
                    and_(
                        MenuRow.hotel_id == latest.c.hotel_id,
                        MenuRow.date == latest.c.max_date,
                    ),
                )
                .outerjoin(HotelRow, HotelRow.id == MenuRow.hotel_id)
                .order_by(MenuRow.date.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._menus_with_hotels(session, stmt), total or 0

    def _find_subscription(self, session: Session, hotel_id: str, endpoint: str):
        stmt = select(SubscriptionRow).where(
            SubscriptionRow.hotel_id == hotel_id, SubscriptionRow.endpoint == endpoint
        )
        return session.execute(stmt).scalar_one_or_none()

    def upsert_subscription(self, hotel_id: str, subscription: dict) -> SubscriptionRecord:
        endpoint = subscription.get("endpoint")
        with self.Session() as session:
            row = self._find_subscription(session, hotel_id, endpoint)
            if row is None:
                row = SubscriptionRow(
                    id=uuid.uuid4().hex,
                    hotel_id=hotel_id,
                    endpoint=endpoint,
                    data=subscription,
                    created_at=time.time(),
                )
                session.add(row)
                try:
                    session.commit()
                    return self._to_subscription(row)
                except IntegrityError:
                    session.rollback()
                    row = self._find_subscription(session, hotel_id, endpoint)
                    if row is None:
                        raise
            row.data = subscription
            session.commit()
            return self._to_subscription(row)

    def delete_subscription(self, hotel_id: str, endpoint: str) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(SubscriptionRow).where(
                    SubscriptionRow.hotel_id == hotel_id,
                    SubscriptionRow.endpoint == endpoint,
                )
            )
            session.commit()
            return (result.rowcount or 0) > 0

    def delete_subscription_by_id(self, subscription_id: str) -> bool:
        with self.Session() as session:
            row = session.get(SubscriptionRow, subscription_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_subscriptions(self, hotel_id: str) -> list[SubscriptionRecord]:
        with self.Session() as session:
            stmt = (
                select(SubscriptionRow)
                .where(SubscriptionRow.hotel_id == hotel_id)
                .order_by(SubscriptionRow.created_at.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_subscription(row) for row in rows]


Base = declarative_base()


class HotelRow(Base):
    __tablename__ = "hotels"

    id = Column(String, primary_key=True)
    mobile_number = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    hotel_name = Column(String, nullable=True, index=True)
    role = Column(String, nullable=False, default=HOTEL_ROLE)
    created_at = Column(Float, nullable=False)


class OtpRow(Base):
    __tablename__ = "otps"

    mobile_number = Column(String, primary_key=True)
    code = Column(String, nullable=False)
    created_at = Column(Float, nullable=False, index=True)


class MenuRow(Base):
    __tablename__ = "menus"
    __table_args__ = (UniqueConstraint("hotel_id", "menu_day", name="uq_menu_hotel_day"),)

    id = Column(String, primary_key=True)
    hotel_id = Column(String, ForeignKey("hotels.id"), nullable=False, index=True)
    image_url = Column(String, nullable=False)
    note = Column(String, nullable=True)
    menu_day = Column(String, nullable=False, index=True)
    date = Column(Float, nullable=False, index=True)


class SubscriptionRow(Base):
    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("hotel_id", "endpoint", name="uq_subscription_hotel_endpoint"),
    )

    id = Column(String, primary_key=True)
    hotel_id = Column(String, ForeignKey("hotels.id"), nullable=False, index=True)
    endpoint = Column(String, nullable=False)
    data = Column("subscription", JSON, nullable=False)
    created_at = Column(Float, nullable=False)
