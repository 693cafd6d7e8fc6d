"""
Sentry error tracking.

Sentry is initialized once at startup when SENTRY_DSN is set. Until then
``capture_error`` is a no-op, so tests and local runs need no DSN.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from app.core.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initialize the Sentry SDK with FastAPI/Starlette integrations.

    Returns:
        True if Sentry was initialized, False if skipped (no DSN) or failed
    """
    if not settings.SENTRY_DSN:
        logger.debug("Sentry initialization skipped (SENTRY_DSN not configured)")
        return False

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENV,
            release=f"{settings.OTEL_SERVICE_NAME}@{settings.APP_VERSION}",
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                LoggingIntegration(
                    level=None,  # Don't capture breadcrumbs from logs
                    event_level=None,  # Don't send log events
                ),
                FastApiIntegration(transaction_style="endpoint"),
                StarletteIntegration(transaction_style="endpoint"),
            ],
            send_default_pii=False,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
        return False

    logger.info(
        f"Sentry initialized for environment '{settings.ENV}' "
        f"with {settings.SENTRY_TRACES_SAMPLE_RATE * 100:.0f}% trace sampling"
    )
    return True


def _serialize_context(context: Dict[str, Any]) -> Dict[str, Any]:
    serialized: Dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, datetime):
            serialized[key] = value.isoformat()
        elif isinstance(value, (str, int, float, bool)) or value is None:
            serialized[key] = value
        else:
            serialized[key] = repr(value)
    return serialized


def capture_error(
    exception: BaseException,
    *,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception and send it to Sentry.

    Returns:
        Event ID if captured, None if Sentry is not initialized
    """
    if not sentry_sdk.is_initialized():
        return None

    with sentry_sdk.new_scope() as scope:
        if context:
            scope.set_context("additional", _serialize_context(context))
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        return sentry_sdk.capture_exception(exception)
