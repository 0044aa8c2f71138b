"""Structured API errors.

Every error is identified by a ``"<type>:<surface>"`` code. The type decides
the HTTP status, the surface decides whether the details reach the client or
only the log.
"""
import logging
from typing import Literal

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


ErrorType = Literal[
    "bad_request", "unauthorized", "forbidden", "not_found", "rate_limit", "offline"
]

Surface = Literal[
    "chat",
    "auth",
    "api",
    "stream",
    "database",
    "history",
    "vote",
    "document",
    "suggestions",
    "activate_gateway",
    "personalization",
    "model",
]

ErrorVisibility = Literal["response", "log", "none"]

GENERIC_MESSAGE = "Something went wrong. Please try again later."

visibility_by_surface: dict[str, ErrorVisibility] = {
    "database": "log",
    "chat": "response",
    "auth": "response",
    "stream": "response",
    "api": "response",
    "history": "response",
    "vote": "response",
    "document": "response",
    "suggestions": "response",
    "activate_gateway": "response",
    "personalization": "response",
    "model": "response",
}

_MESSAGES = {
    "bad_request:api": "The request couldn't be processed. Please check your input and try again.",
    "bad_request:activate_gateway": (
        "AI Gateway requires a valid credit card on file to service requests. "
        "Please visit https://vercel.com/d?to=%2F%5Bteam%5D%2F%7E%2Fai%3Fmodal%3Dadd-credit-card "
        "to add a card and unlock your free credits."
    ),
    "unauthorized:auth": "You need to sign in before continuing.",
    "forbidden:auth": "Your account does not have access to this feature.",
    "rate_limit:chat": "You have exceeded your maximum number of messages for the day. Please try again later.",
    "not_found:chat": "The requested chat was not found. Please check the chat ID and try again.",
    "forbidden:chat": "This chat belongs to another user. Please check the chat ID and try again.",
    "unauthorized:chat": "You need to sign in to view this chat. Please sign in and try again.",
    "offline:chat": "We're having trouble sending your message. Please check your internet connection and try again.",
    "not_found:document": "The requested document was not found. Please check the document ID and try again.",
    "forbidden:document": "This document belongs to another user. Please check the document ID and try again.",
    "unauthorized:document": "You need to sign in to view this document. Please sign in and try again.",
    "bad_request:document": "The request to create or update the document was invalid. Please check your input and try again.",
    "forbidden:model": "Your plan does not include access to the selected model. Please choose another model.",
}

_STATUS_BY_TYPE = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "rate_limit": 429,
    "offline": 503,
}


def get_message_by_error_code(code: str) -> str:
    if "database" in code:
        return "An error occurred while executing a database query."
    return _MESSAGES.get(code, GENERIC_MESSAGE)


def get_status_code_by_type(error_type: str) -> int:
    return _STATUS_BY_TYPE.get(error_type, 500)


class ChatSDKError(Exception):
    def __init__(self, code: str, cause: str | None = None):
        error_type, _, surface = code.partition(":")
        self.type = error_type
        self.surface = surface
        self.cause = cause
        self.message = get_message_by_error_code(code)
        self.status_code = get_status_code_by_type(error_type)
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return f"{self.type}:{self.surface}"

    def to_response(self) -> JSONResponse:
        visibility = visibility_by_surface.get(self.surface, "response")

        if visibility == "log":
            logger.error(
                "code=%s message=%s cause=%s", self.code, self.message, self.cause
            )
            return JSONResponse(
                {"code": "", "message": GENERIC_MESSAGE},
                status_code=self.status_code,
            )

        return JSONResponse(
            {"code": self.code, "message": self.message, "cause": self.cause},
            status_code=self.status_code,
        )


# ---------- FastAPI handlers ----------
async def chat_sdk_error_handler(request: Request, exc: ChatSDKError):
    return exc.to_response()


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    issues = [
        {"path": list(err.get("loc", [])), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Invalid input", "issues": issues}, status_code=400)
