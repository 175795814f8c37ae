"""
Arrow Domain - Security Middleware

Rate limiting, request validation, security headers.
"""

from fastapi import Request, HTTPException, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import Callable

from ..config import settings


# ============================================
# RATE LIMITER
# ============================================

def get_rate_limit_key(request: Request) -> str:
    """
    Ключ для rate limiting.
    Использует IP + session_id (если запрос к сессии).
    """
    ip = get_remote_address(request)

    session_id = request.path_params.get("session_id") if request.path_params else None

    if session_id:
        return f"{ip}:{session_id}"
    return ip


limiter = Limiter(key_func=get_rate_limit_key)


# ============================================
# REQUEST VALIDATORS
# ============================================

MAX_JSON_SIZE = 1024 * 100


async def validate_json_size(request: Request):
    """
    Проверка размера JSON (защита от DoS).
    Max 100KB по умолчанию.
    """
    content_length = request.headers.get("content-length")

    if content_length and content_length.isdigit() and int(content_length) > MAX_JSON_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Request too large"
        )


# ============================================
# SECURITY HEADERS MIDDLEWARE
# ============================================

async def add_security_headers(request: Request, call_next: Callable):
    """Добавляет security headers ко всем ответам."""
    response = await call_next(request)

    # Security headers
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    # CSP (для production настройте под ваш домен)
    if not settings.DEBUG:
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self'"
        )

    return response
