# messenger/tests/unit/test_security.py
import datetime
from uuid import uuid4

import jwt
import pytest

from messenger.config import AppConfig
from messenger.infrastructure.security import SecurityService


@pytest.fixture
def security_service():
    config = AppConfig(
        SECRET_KEY="test_secret",
        ALGORITHM="HS256",
        REFRESH_SECRET_KEY="test_refresh_secret",
    )
    return SecurityService(config)


def test_password_hashing(security_service):
    password = "testpassword"
    hashed = security_service.get_password_hash(password)
    assert security_service.verify_password(password, hashed)
    assert not security_service.verify_password("wrongpassword", hashed)


def test_token_round_trip(security_service):
    user_id = uuid4()
    access_token, expires_at = security_service.create_access_token(user_id)
    refresh_token, _ = security_service.create_refresh_token(user_id)

    assert expires_at > datetime.datetime.now(datetime.timezone.utc)
    assert security_service.decode_access_token(access_token) == user_id
    assert security_service.decode_refresh_token(refresh_token) == user_id


def test_tokens_are_not_interchangeable(security_service):
    user_id = uuid4()
    access_token, _ = security_service.create_access_token(user_id)
    refresh_token, _ = security_service.create_refresh_token(user_id)

    assert security_service.decode_refresh_token(access_token) is None
    assert security_service.decode_access_token(refresh_token) is None


def test_expired_token_is_rejected(security_service):
    token, _ = security_service.create_access_token(
        uuid4(), expires_delta=datetime.timedelta(seconds=-1)
    )
    assert security_service.decode_access_token(token) is None


def test_garbage_and_foreign_tokens_are_rejected(security_service):
    assert security_service.decode_access_token("not-a-token") is None
    forged = jwt.encode(
        {"sub": str(uuid4()), "type": "access"}, "other-secret", algorithm="HS256"
    )
    assert security_service.decode_access_token(forged) is None


def test_token_with_malformed_subject_is_rejected(security_service):
    token = jwt.encode(
        {"sub": "alice", "type": "access"}, "test_secret", algorithm="HS256"
    )
    assert security_service.decode_access_token(token) is None
