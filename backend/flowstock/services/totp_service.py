# Overview: RFC 6238 time-based one-time passwords for MFA.

"""
TOTP (RFC 6238): HMAC-SHA1, 6 digits, 30 second step.

Verification accepts the current step and one step either side to absorb
clock drift between server and authenticator app.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import struct
import time
from urllib.parse import quote, urlencode

DIGITS = 6
STEP_SECONDS = 30
WINDOW_STEPS = 1
SECRET_BYTES = 20


def generate_secret() -> str:
    """Random 160-bit secret, base32 without padding (authenticator app format)."""
    return base64.b32encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.strip().replace(" ", "").upper()
    padding = "=" * (-len(cleaned) % 8)
    return base64.b32decode(cleaned + padding)


def code_at(secret: str, counter: int) -> str:
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10 ** DIGITS)).zfill(DIGITS)


def current_code(secret: str, *, at: float | None = None) -> str:
    now = time.time() if at is None else at
    return code_at(secret, int(now // STEP_SECONDS))


def verify(secret: str | None, code: str | None, *, at: float | None = None) -> bool:
    if not secret or not code:
        return False
    code = str(code).strip().replace(" ", "")
    # ASCII only: str.isdigit() also accepts other scripts' digits
    if len(code) != DIGITS or not code.isascii() or not code.isdigit():
        return False

    now = time.time() if at is None else at
    counter = int(now // STEP_SECONDS)
    return any(
        hmac.compare_digest(code_at(secret, counter + delta), code)
        for delta in range(-WINDOW_STEPS, WINDOW_STEPS + 1)
    )


def provisioning_uri(secret: str, *, username: str, issuer: str) -> str:
    label = quote(f"{issuer}:{username}")
    params = urlencode({
        "secret": secret,
        "issuer": issuer,
        "algorithm": "SHA1",
        "digits": DIGITS,
        "period": STEP_SECONDS,
    })
    return f"otpauth://totp/{label}?{params}"
