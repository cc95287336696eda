"""
SMS relay used to deliver one-time codes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds


def otp_message(code: str) -> str:
    return f"Your Hotel Login OTP is: {code}. Please do not share this with anyone."


class SmsRelay(Protocol):
    def send_code(self, mobile_number: str, code: str) -> bool:
        ...


@dataclass
class HttpSmsRelay:
    """Posts `{phone, message}` to an SMS gateway (e.g. an Android gateway app)."""

    url: str

    def send_code(self, mobile_number: str, code: str) -> bool:
        try:
            response = requests.post(
                self.url,
                json={"phone": mobile_number, "message": otp_message(code)},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to reach SMS gateway for %s: %s", mobile_number, exc)
            return False
        logger.info("Sent OTP to %s via SMS gateway", mobile_number)
        return True


@dataclass
class LoggingSmsRelay:
    """Used when no gateway is configured; the code only goes to the log."""

    sent: list[tuple[str, str]] = field(default_factory=list)

    def send_code(self, mobile_number: str, code: str) -> bool:
        logger.info("[MOCK SMS] OTP for %s is: %s", mobile_number, code)
        self.sent.append((mobile_number, code))
        return True
