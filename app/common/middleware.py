"""
Middleware HTTP comunes
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Respuestas con datos de facturación o caja: nunca en caché intermedia
NO_STORE_PREFIXES = ("/invoices", "/cash-desk", "/auth")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Encabezados de seguridad para todas las respuestas
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"

        return response
