"""HTTPX client factory for schema downloads.

One client is created per build and shared by every worker thread; httpx
clients are thread-safe and pool connections per host, which keeps many
small schema downloads from the same origin cheap.

Example:
    >>> from SchemaBundle.AirGap.settings import HttpSettings
    >>> client = create_http_client(HttpSettings(), max_connections=10)
    >>> client.close()
"""

from __future__ import annotations

import logging
import ssl

import certifi
import httpx

from .settings import HttpSettings

logger = logging.getLogger(__name__)

__all__ = ["create_http_client"]


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create an SSL context backed by the certifi bundle."""
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(settings: HttpSettings, *, max_connections: int = 10) -> httpx.Client:
    """Build the HTTPX client used by the fetch engine.

    Args:
        settings: Timeout, redirect, TLS, and user agent configuration.
        max_connections: Connection pool ceiling, normally the build concurrency.

    Returns:
        Configured :class:`httpx.Client`; the caller owns it and must close it.
    """

    ssl_ctx = _create_ssl_context(settings.verify_tls)
    client = httpx.Client(
        timeout=httpx.Timeout(
            connect=settings.timeout_connect,
            read=settings.timeout_read,
            write=settings.timeout_read,
            pool=None,
        ),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
        ),
        follow_redirects=settings.follow_redirects,
        headers={"User-Agent": settings.user_agent},
        verify=ssl_ctx,
    )
    logger.debug(
        "HTTPX client created",
        extra={"stage": "network", "max_connections": max_connections},
    )
    return client
