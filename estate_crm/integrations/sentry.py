# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   Set SENTRY_DSN in the environment or .env
#
# Usage:
#   init_sentry() runs in the app lifespan (estate_crm/api/app.py);
#   server errors are reported once, through capture_exception() in
#   estate_crm/api/errors.py; the integrations and log records do not
#   raise events of their own.
#
# =============================================================================

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from estate_crm.config import Settings, get_settings
from estate_crm.core.errors import CRMError

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")
QUIET_TRANSACTIONS = ("/health", "/healthz", "/ready")


def init_sentry(settings: Settings | None = None) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    settings = settings or get_settings()

    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint", failed_request_status_codes=set()),
            StarletteIntegration(transaction_style="endpoint", failed_request_status_codes=set()),
            # Log records become breadcrumbs only
            LoggingIntegration(level=logging.INFO, event_level=None),
        ],
        # Request bodies carry passwords and tokens
        send_default_pii=False,
        before_send=_filter_events,
        before_send_transaction=_filter_transactions,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Drop expected client errors and scrub credentials."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, CRMError) and exc_value.status_code < 500:
            return None

    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"

    return event


def _filter_transactions(event: dict, hint: dict) -> dict | None:
    if event.get("transaction", "") in QUIET_TRANSACTIONS:
        return None
    return event


def _enabled() -> bool:
    return sentry_sdk.get_client().is_active()


def capture_exception(error: Exception, **context) -> str | None:
    """
    Capture an exception to Sentry.

    Returns the event ID if captured, None otherwise.
    """
    if not _enabled():
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(error)


def set_user(user_id: str, role: str | None = None) -> None:
    """Attach the current user to error reports (id and role only)."""
    if _enabled():
        sentry_sdk.set_user({"id": user_id, "role": role})
