"""Middleware registration."""

from fastapi import FastAPI

from wordduel.config import Settings
from wordduel.middleware.cors import setup_cors
from wordduel.middleware.error_handler import setup_error_handlers
from wordduel.middleware.logging import setup_logging
from wordduel.middleware.rate_limit import RateLimitMiddleware
from wordduel.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and the middleware stack.

    Starlette runs middleware in reverse-add order, so CORS (added last) is
    outermost and also wraps 429 responses. Rate limiting needs Redis and is
    left out when no Redis URL is configured.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    if settings.redis_url:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
