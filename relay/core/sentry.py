"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set.
Does nothing otherwise — safe to call unconditionally.
"""

import logging

from relay.core.config import Settings

logger = logging.getLogger(__name__)


def init_sentry(s: Settings) -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True when enabled."""
    if not s.sentry_dsn:
        logger.debug("Sentry DSN not configured — skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=s.sentry_dsn,
        traces_sample_rate=0.1,
        send_default_pii=False,  # request headers carry backend api keys
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    logger.info("Sentry initialized")
    return True
