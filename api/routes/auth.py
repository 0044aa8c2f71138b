from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import secrets
import logging

from api.dependencies import get_optional_user
from api.integrations.google import fetch_google_identity, google_authorization_url
from api.schemas.user import UserLogin, UserRegister
from core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_NAME,
    FRONTEND_URL,
    is_production_environment,
)
from core.database import get_db
from core.errors import ChatSDKError
from core.security import create_access_token, verify_password
from db.models import User
from db.queries import create_user, get_user
from services.limiting import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

OAUTH_STATE_COOKIE = "oauth_state"


# ---------- helpers ----------
def _sign_in(response: Response, user: User) -> None:
    token, _ = create_access_token(data={"sub": str(user.id)})
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=is_production_environment(),
    )


def _status(status: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"status": status}, status_code=status_code)


async def _read_json(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


# ---------- credentials ----------
@router.post("/login")
@limiter.limit("5/minute;100/day")
async def login(request: Request, db: AsyncSession = Depends(get_db)):
    try:
        data = UserLogin.model_validate(await _read_json(request))
    except ValidationError:
        return _status("invalid_data", 400)

    users = await get_user(db, data.email)
    if not users or not verify_password(data.password, users[0].password):
        return _status("failed", 401)

    response = _status("success")
    _sign_in(response, users[0])
    return response


@router.post("/register")
async def register(request: Request, db: AsyncSession = Depends(get_db)):
    # credential accounts are a development convenience only
    if is_production_environment():
        return _status("failed", 403)

    try:
        data = UserRegister.model_validate(await _read_json(request))
    except ValidationError:
        return _status("invalid_data", 400)

    try:
        if await get_user(db, data.email):
            return _status("user_exists", 409)

        user = await create_user(
            db,
            email=data.email,
            password=data.password,
            name=data.name,
            profile_url=None,
            type="dev",
        )
    except ChatSDKError as exc:
        logger.error("Registration failed: %s", exc.cause)
        return _status("failed", 500)

    response = _status("success")
    _sign_in(response, user)
    return response


@router.post("/logout", status_code=204)
async def logout():
    response = Response(status_code=204)
    response.delete_cookie(COOKIE_NAME)
    return response


@router.get("/session")
async def session(user: Optional[User] = Depends(get_optional_user)):
    if user is None:
        return None

    return {
        "user": {
            "id": str(user.id),
            "email": user.email,
            "name": user.name,
            "image": user.profile_url,
            "type": user.type,
        }
    }


# ---------- google ----------
@router.get("/google")
async def google_login():
    state = secrets.token_urlsafe(32)
    response = RedirectResponse(google_authorization_url(state))
    response.set_cookie(OAUTH_STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax")
    return response


@router.get("/callback/google")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if error or not code:
        return RedirectResponse(f"{FRONTEND_URL}/login?error={error or 'no_code'}")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not expected_state or not secrets.compare_digest(expected_state, state or ""):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    profile = await fetch_google_identity(code)

    email = profile.get("email")
    if not email:
        return RedirectResponse(f"{FRONTEND_URL}/login?error=no_email")

    users = await get_user(db, email)
    if users:
        user = users[0]
    else:
        user = await create_user(
            db,
            email=email,
            password=None,
            name=profile.get("name") or "user",
            profile_url=profile.get("picture"),
        )

    response = RedirectResponse(f"{FRONTEND_URL}/chat")
    response.delete_cookie(OAUTH_STATE_COOKIE)
    _sign_in(response, user)
    return response
