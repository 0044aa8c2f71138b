import os

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from api.routes.auth import router as auth_router
from api.routes.chat import router as chat_router
from api.routes.document import router as document_router
from api.routes.files import router as files_router
from api.routes.history import router as history_router
from api.routes.personalization import router as personalization_router
from api.routes.user import router as user_router
from api.routes.vote import router as vote_router


from contextlib import asynccontextmanager
from loguru import logger

from core.config import CORS_ORIGINS, LOG_FILE, UPLOAD_DIR
from core.database import init_db
from core.errors import (
    ChatSDKError,
    chat_sdk_error_handler,
    http_error_handler,
    validation_error_handler,
)
from services.limiting import limiter
from services.redis import close_redis
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException


logger.add(LOG_FILE, serialize=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize tables (Alembic recommended but this works)
    await init_db()
    logger.info("Database ready")

    yield     # <- FastAPI is now serving requests

    # On shutdown
    await close_redis()
    logger.info("Redis connection closed.")


# FastAPI app
app = FastAPI(
    title="Witely Chat API",
    lifespan=lifespan,
)


# ---------- SlowAPI -------------
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request, exc):
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests, slow down"}
    )


# ---------- errors ----------
app.add_exception_handler(ChatSDKError, chat_sdk_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)


# ---------- CORS ----------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,     # explicit list, cookies need it
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ROUTES -----------------------
@app.get("/ping", response_class=PlainTextResponse)
async def ping():
    return "pong"

app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(history_router)
app.include_router(vote_router)
app.include_router(document_router)
app.include_router(files_router)
app.include_router(personalization_router)
app.include_router(user_router)

# uploaded attachments are public, like blob storage urls
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="debug"
    )
