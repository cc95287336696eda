"""
Dependency wiring for the FastAPI app.

Each collaborator is built once from Settings; tests replace them through
`app.dependency_overrides`.
"""

from __future__ import annotations

import logging

from menuboard.config import get_settings
from menuboard.db import DbClient, InMemoryDbClient, PostgresDbClient
from menuboard.push import InMemoryPushTransport, PushTransport, WebPushTransport
from menuboard.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from menuboard.ratelimit import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from menuboard.sms import HttpSmsRelay, LoggingSmsRelay, SmsRelay
from menuboard.storage import InlineMediaStore, MediaStore, S3MediaStore

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_media_store: MediaStore | None = None
_push_transport: PushTransport | None = None
_queue_client: JobQueue | None = None
_rate_limiter: RateLimiter | None = None
_sms_relay: SmsRelay | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_media_store() -> MediaStore:
    global _media_store
    if _media_store:
        return _media_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.media_configured:
        logger.warning("Media storage credentials missing; menus are stored inline")
        _media_store = InlineMediaStore()
    else:
        _media_store = S3MediaStore(
            bucket=settings.media_bucket,
            region=settings.media_region or "",
            endpoint=settings.media_endpoint or "",
            access_key_id=settings.media_access_key_id or "",
            secret_access_key=settings.media_secret_access_key or "",
            public_base_url=settings.media_public_base_url or "",
        )
    return _media_store


def get_push_transport() -> PushTransport:
    global _push_transport
    if _push_transport:
        return _push_transport

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.push_configured:
        _push_transport = InMemoryPushTransport()
    else:
        _push_transport = WebPushTransport(
            vapid_private_key=settings.vapid_private_key,
            vapid_subject=settings.vapid_subject,
        )
    return _push_transport


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching notifications.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter:
        return _rate_limiter

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _rate_limiter = RedisRateLimiter(
            url=settings.redis_url,
            limit=settings.otp_rate_limit,
            window_seconds=settings.otp_rate_window_seconds,
        )
    else:
        _rate_limiter = InMemoryRateLimiter(
            limit=settings.otp_rate_limit,
            window_seconds=settings.otp_rate_window_seconds,
        )
    return _rate_limiter


def get_sms_relay() -> SmsRelay:
    global _sms_relay
    if _sms_relay:
        return _sms_relay

    settings = get_settings()
    if settings.sms_gateway_url:
        _sms_relay = HttpSmsRelay(url=settings.sms_gateway_url)
    else:
        _sms_relay = LoggingSmsRelay()
    return _sms_relay
