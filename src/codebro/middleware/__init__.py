"""Middleware registration."""

from fastapi import FastAPI

from codebro.config import Settings
from codebro.middleware.cors import setup_cors
from codebro.middleware.error_handler import setup_error_handlers
from codebro.middleware.logging import setup_logging
from codebro.middleware.rate_limit import RateLimitMiddleware
from codebro.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs the last-added middleware outermost,
    so CORS goes last and also wraps 429 responses from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
