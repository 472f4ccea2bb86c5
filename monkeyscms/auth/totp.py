"""
Time-based one-time passwords (RFC 6238) for two-factor authentication.
"""

import base64
import hashlib
import hmac
import secrets
import struct
import time
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote, urlencode

from ..config import settings

SECRET_BYTES = 20
RECOVERY_CODE_COUNT = 8


def generate_secret() -> str:
    """Random base32 secret without padding."""
    return base64.b32encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    normalized = secret.replace(" ", "").upper()
    padding = "=" * (-len(normalized) % 8)
    return base64.b32decode(normalized + padding)


def generate_code(
    secret: str,
    timestamp: Optional[float] = None,
    digits: Optional[int] = None,
    period: Optional[int] = None,
) -> str:
    """
    Generate the code for a point in time.

    Args:
        secret: Base32 secret
        timestamp: Unix time, now when omitted
        digits: Code length, ``TOTP_DIGITS`` when omitted
        period: Step length in seconds, ``TOTP_PERIOD`` when omitted
    """
    digits = digits or settings.TOTP_DIGITS
    period = period or settings.TOTP_PERIOD
    counter = int((time.time() if timestamp is None else timestamp) // period)

    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(binary % (10**digits)).zfill(digits)


def verify_code(secret: str, code: str, timestamp: Optional[float] = None, window: Optional[int] = None) -> bool:
    """
    Check a code, accepting ``window`` steps of clock drift either way.
    """
    code = (code or "").replace(" ", "")
    if not code.isdigit():
        return False
    try:
        _decode_secret(secret)
    except (ValueError, TypeError):
        return False

    window = settings.TOTP_WINDOW if window is None else window
    now = time.time() if timestamp is None else timestamp
    for step in range(-window, window + 1):
        candidate = generate_code(secret, now + step * settings.TOTP_PERIOD)
        if hmac.compare_digest(candidate, code):
            return True
    return False


def provisioning_uri(secret: str, account: str, issuer: Optional[str] = None) -> str:
    """``otpauth://`` URI for authenticator apps."""
    issuer = issuer or settings.TOTP_ISSUER
    label = quote(f"{issuer}:{account}")
    params = urlencode(
        {
            "secret": secret,
            "issuer": issuer,
            "algorithm": "SHA1",
            "digits": settings.TOTP_DIGITS,
            "period": settings.TOTP_PERIOD,
        }
    )
    return f"otpauth://totp/{label}?{params}"


def generate_recovery_codes(count: int = RECOVERY_CODE_COUNT) -> List[str]:
    return [f"{secrets.token_hex(4)}-{secrets.token_hex(4)}" for _ in range(count)]


@dataclass
class TwoFactorSetup:
    """Secret and provisioning data shown while enabling two-factor login."""

    secret: str
    uri: str
    recovery_codes: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, account: str) -> "TwoFactorSetup":
        secret = generate_secret()
        return cls(secret=secret, uri=provisioning_uri(secret, account), recovery_codes=generate_recovery_codes())
