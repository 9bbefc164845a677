from __future__ import annotations

from uuid import uuid4

import pytest
from jose import jwt

from src.application.errors import AuthError
from src.infrastructure.auth.jwt_service import JWTService

SECRET = "unit-secret"


def make_service(**overrides) -> JWTService:
    params = {"secret_key": SECRET, "algorithm": "HS256", "audience": "uploads"}
    params.update(overrides)
    return JWTService(**params)


def forge(service: JWTService, **claims) -> str:
    base = service.decode(service.create_access_token(subject=uuid4()))
    base.update(claims)
    return jwt.encode(base, SECRET, algorithm="HS256")


def test_verify_resolves_subject():
    service = make_service()
    user_id = uuid4()
    verified = service.verify(service.create_access_token(subject=user_id))
    assert verified.subject == user_id
    assert verified.claims["aud"] == "uploads"


def test_token_signed_with_other_secret_is_rejected():
    token = make_service(secret_key="other").create_access_token(subject=uuid4())
    with pytest.raises(AuthError):
        make_service().verify(token)


def test_expired_token_is_rejected():
    service = make_service(access_token_expires_minutes=-5)
    with pytest.raises(AuthError) as exc_info:
        service.verify(service.create_access_token(subject=uuid4()))
    assert exc_info.value.message == "Token expired"


def test_refresh_token_is_not_accepted():
    service = make_service()
    with pytest.raises(AuthError):
        service.verify(forge(service, typ="refresh"))


def test_subject_must_be_a_uuid():
    service = make_service()
    with pytest.raises(AuthError):
        service.verify(forge(service, sub="alice"))
