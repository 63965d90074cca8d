"""Bearer token verification."""
from datetime import UTC, datetime, timedelta

from jose import jwt

from app.core.config import settings
from app.core.security import create_access_token, decode_access_token


def test_token_round_trip():
    token = create_access_token(42)

    assert decode_access_token(token) == "42"


def test_expired_token_is_rejected():
    token = create_access_token(42, expires_minutes=-1)

    assert decode_access_token(token) is None


def test_garbage_token_is_rejected():
    assert decode_access_token("not-a-jwt") is None


def test_token_of_another_type_is_rejected():
    payload = {"sub": "42", "type": "refresh", "exp": datetime.now(UTC) + timedelta(minutes=5)}
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

    assert decode_access_token(token) is None


async def test_unknown_user_is_unauthorized(client):
    headers = {"Authorization": f"Bearer {create_access_token(999)}"}

    response = await client.get("/api/v1/appointments", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"
