"""SlowAPI limiter shared by the services.

Reservation writes are limited per signed-in user so that several people
behind one office NAT do not share a budget.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .auth import token_subject
from .config import get_settings

settings = get_settings()
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.default_rate_limit], enabled=settings.rate_limiting_enabled)

BOOKING_WRITE_LIMIT = settings.booking_write_rate_limit


def booking_rate_key(request: Request) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    subject = token_subject(token) if scheme.lower() == "bearer" and token else None
    if subject:
        return f"user:{subject}"
    return get_remote_address(request)


def rate_limit_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": f"Rate limit exceeded: {exc.detail}", "code": "rate_limited"})


def apply_rate_limiter(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
