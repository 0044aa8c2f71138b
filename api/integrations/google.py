# Google sign-in (authorization code flow)
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException
from core.config import (
    GOOGLE_AUTH_URL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_TOKEN_URL,
    GOOGLE_PROFILE_URL,
)


def google_authorization_url(state: str) -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def fetch_google_identity(code: str, client: Optional[httpx.AsyncClient] = None) -> dict:
    """Trade the callback ``code`` for the signed-in Google account's profile.

    Returns the userinfo payload (``sub``, ``email``, ``name``, ``picture`` ...).
    """
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=10)

    try:
        token_resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": GOOGLE_REDIRECT_URI,
            },
        )
        if token_resp.status_code != 200:
            raise HTTPException(400, token_resp.text)

        profile_resp = await client.get(
            GOOGLE_PROFILE_URL,
            headers={"Authorization": f"Bearer {token_resp.json()['access_token']}"},
        )
        if profile_resp.status_code != 200:
            raise HTTPException(400, profile_resp.text)

        return profile_resp.json()
    finally:
        if own_client:
            await client.aclose()
