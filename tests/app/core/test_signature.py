"""Tests for webhook signature and subscription checks."""

import pytest

from app.core.signature import compute_signature, verify_signature, verify_subscription
from app.exceptions import AuthenticationError

SECRET = "app-secret"
BODY = b'{"object":"whatsapp_business_account","entry":[]}'


def test_compute_signature_format():
    signature = compute_signature(SECRET, BODY)
    algorithm, _, digest = signature.partition("=")
    assert algorithm == "sha256"
    assert len(digest) == 64


def test_verify_signature_valid():
    assert verify_signature(BODY, compute_signature(SECRET, BODY), SECRET) is True


def test_verify_signature_uppercase_hex_accepted():
    digest = compute_signature(SECRET, BODY).split("=", 1)[1]
    assert verify_signature(BODY, f"sha256={digest.upper()}", SECRET) is True


def test_verify_signature_body_changed():
    signature = compute_signature(SECRET, BODY)
    assert verify_signature(BODY + b" ", signature, SECRET) is False


def test_verify_signature_wrong_secret():
    signature = compute_signature("other-secret", BODY)
    assert verify_signature(BODY, signature, SECRET) is False


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "sha256=",
        "sha1=abcdef",
        "sha256=not-hex",
        "garbage",
    ],
)
def test_verify_signature_malformed_header(header):
    assert verify_signature(BODY, header, SECRET) is False


def test_verify_signature_without_secret_accepts_everything():
    assert verify_signature(BODY, None, None) is True
    assert verify_signature(BODY, "sha256=deadbeef", "") is True


def test_verify_subscription_echoes_challenge():
    assert verify_subscription("subscribe", "tok", "12345", "tok") == "12345"


def test_verify_subscription_missing_challenge_returns_empty():
    assert verify_subscription("subscribe", "tok", None, "tok") == ""


@pytest.mark.parametrize(
    "mode,token,verify_token",
    [
        ("unsubscribe", "tok", "tok"),
        (None, "tok", "tok"),
        ("subscribe", "wrong", "tok"),
        ("subscribe", None, "tok"),
        ("subscribe", "tok", None),
    ],
)
def test_verify_subscription_rejected(mode, token, verify_token):
    with pytest.raises(AuthenticationError):
        verify_subscription(mode, token, "12345", verify_token)
