import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from jose import jwt

from blog_api.core.config import DEFAULT_SECRET_KEY, Settings, settings
from blog_api.core.security import (
    check_secret_key,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_access_token,
    verify_password,
)

USER = SimpleNamespace(id=7, username="alice", role="admin")


def test_password_hash_round_trip():
    hashed = get_password_hash("correct horse")
    assert hashed != "correct horse"
    assert hashed.startswith("$2")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_same_password_gets_different_salts():
    assert get_password_hash("secret123") != get_password_hash("secret123")


def test_malformed_hash_raises():
    with pytest.raises(ValueError):
        verify_password("secret123", "not-a-bcrypt-hash")


def test_default_work_factor_is_12():
    assert Settings.model_fields["BCRYPT_ROUNDS"].default == 12


def test_token_carries_identity_and_role():
    token, expires_at = create_access_token(USER)
    payload = decode_access_token(token)

    assert payload is not None
    assert payload.userId == 7
    assert payload.username == "alice"
    assert payload.role == "admin"
    assert payload.exp - payload.iat == 7 * 24 * 3600
    assert abs(expires_at.timestamp() - payload.exp) < 1


def test_token_accepted_after_six_days():
    issued = datetime.now(timezone.utc) - timedelta(days=6)
    token, _ = create_access_token(USER, issued_at=issued)
    assert verify_access_token(token).ok


def test_token_rejected_after_eight_days():
    issued = datetime.now(timezone.utc) - timedelta(days=8)
    token, _ = create_access_token(USER, issued_at=issued)
    result = verify_access_token(token)
    assert not result.ok
    assert result.payload is None
    assert result.reason
    assert decode_access_token(token) is None


def test_token_signed_with_other_secret_rejected():
    token, _ = create_access_token(USER)
    assert verify_access_token(token, secret_key="some-other-secret").payload is None

    forged = jwt.encode({"userId": 1, "username": "x", "role": "admin", "iat": 0,
                         "exp": 9999999999}, "attacker-secret", algorithm="HS256")
    assert decode_access_token(forged) is None


def test_tampered_and_garbage_tokens_rejected():
    token, _ = create_access_token(USER)
    header, _, signature = token.split(".")
    # Same signature, payload promoted to a different user
    forged_body = base64.urlsafe_b64encode(json.dumps(
        {"userId": 1, "username": "mallory", "role": "admin", "iat": 0, "exp": 9999999999}
    ).encode()).rstrip(b"=").decode()
    tampered = ".".join([header, forged_body, signature])

    assert decode_access_token(tampered) is None
    assert decode_access_token("not.a.token") is None
    assert decode_access_token("") is None


def test_token_missing_claims_rejected():
    token = jwt.encode({"userId": 1, "exp": 9999999999}, settings.SECRET_KEY,
                       algorithm=settings.ALGORITHM)
    result = verify_access_token(token)
    assert not result.ok
    assert "claims" in result.reason


def test_default_secret_logs_warning(monkeypatch, caplog):
    monkeypatch.setattr(settings, "SECRET_KEY", DEFAULT_SECRET_KEY)
    with caplog.at_level(logging.WARNING, logger="blog_api.core.security"):
        assert check_secret_key() is False
    assert "SECRET_KEY" in caplog.text


def test_custom_secret_is_accepted_quietly(caplog):
    with caplog.at_level(logging.WARNING, logger="blog_api.core.security"):
        assert check_secret_key() is True
    assert caplog.text == ""
