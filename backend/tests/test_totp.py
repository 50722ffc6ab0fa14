"""TOTP tests against the RFC 6238 SHA-1 reference vectors (truncated to 6 digits)."""

import pytest

from flowstock.services import totp_service

# base32("12345678901234567890")
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.mark.parametrize(
    "timestamp,expected",
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ],
)
def test_reference_vectors(timestamp, expected):
    assert totp_service.current_code(RFC_SECRET, at=timestamp) == expected


def test_verify_accepts_one_step_of_drift():
    code = totp_service.current_code(RFC_SECRET, at=1111111109)

    assert totp_service.verify(RFC_SECRET, code, at=1111111109 + 30)
    assert totp_service.verify(RFC_SECRET, code, at=1111111109 - 30)
    assert not totp_service.verify(RFC_SECRET, code, at=1111111109 + 90)


@pytest.mark.parametrize(
    "code",
    [None, "", "12345", "1234567", "abcdef", "\u0661\u0662\u0663\u0664\u0665\u0666", "\uff11\uff12\uff13\uff14\uff15\uff16"],
)
def test_verify_rejects_malformed_codes(code):
    assert not totp_service.verify(RFC_SECRET, code, at=59)


def test_verify_without_secret():
    assert not totp_service.verify(None, "287082", at=59)


def test_generated_secret_round_trips():
    secret = totp_service.generate_secret()

    assert len(secret) == 32
    assert totp_service.verify(secret, totp_service.current_code(secret))
