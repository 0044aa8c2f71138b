from datetime import timedelta

import httpx
import pytest
from fastapi import HTTPException

from api.integrations.google import fetch_google_identity, google_authorization_url
from core.security import create_access_token, decode_access_token, hash_password, verify_password


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert not verify_password("secret123", None)


def test_tokens_round_trip_and_expire():
    token, _ = create_access_token({"sub": "abc"})
    assert decode_access_token(token)["sub"] == "abc"

    expired, _ = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(expired) is None


def test_google_authorization_url_carries_state():
    url = google_authorization_url("xyz")
    assert url.startswith("https://accounts.google.com/")
    assert "state=xyz" in url
    assert "scope=openid+email+profile" in url


async def test_google_identity_exchange():
    def handler(request):
        if request.url.path == "/token":
            assert b"code=abc" in request.content
            return httpx.Response(200, json={"access_token": "tok"})
        assert request.headers["authorization"] == "Bearer tok"
        return httpx.Response(200, json={"email": "g@example.com", "name": "Gee"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        profile = await fetch_google_identity("abc", client)

    assert profile == {"email": "g@example.com", "name": "Gee"}


async def test_google_identity_rejected_code():
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: httpx.Response(400, text="invalid_grant"))
    ) as client:
        with pytest.raises(HTTPException) as info:
            await fetch_google_identity("bad", client)

    assert info.value.status_code == 400
