# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.fetch",
#   "purpose": "Resolve a single catalog entry from the local override directory or the network",
#   "sections": [
#     {"id": "fetchresult", "name": "FetchResult", "anchor": "class-fetchresult", "kind": "class"},
#     {"id": "doublingbackoff", "name": "_DoublingBackoff", "anchor": "class-doublingbackoff", "kind": "class"},
#     {"id": "download-with-retry", "name": "download_with_retry", "anchor": "function-download-with-retry", "kind": "function"},
#     {"id": "resolve-entry", "name": "resolve_entry", "anchor": "function-resolve-entry", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Fetch engine for individual catalog entries.

Resolution is local-first: a file in the override directory whose name
matches the planned filename is copied as-is and the network is never
contacted for that entry. Everything else is downloaded with a bounded number
of attempts and doubling delays between them.

Per-entry failures never escape :func:`resolve_entry`. They are logged and
returned as ``failed`` results that carry the untouched original entry, so the
rewritten catalog never points at a file that was not written.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt
from tenacity.wait import wait_base

from .errors import DownloadError
from .filesystem import atomic_copy, atomic_write_bytes
from .logging_config import LOGGER_NAME
from .planning import entry_url
from .settings import RetrySettings

__all__ = [
    "STATUS_DOWNLOADED",
    "STATUS_COPIED",
    "STATUS_SKIPPED",
    "STATUS_FAILED",
    "FetchResult",
    "download_with_retry",
    "resolve_entry",
]

STATUS_DOWNLOADED = "downloaded"
STATUS_COPIED = "copied"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]

# Exceptions that count as a failed attempt worth retrying.
_RETRYABLE_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


@dataclass(slots=True)
class FetchResult:
    """Outcome of resolving one catalog entry.

    Attributes:
        index: Position of the entry in the source catalog.
        entry: Entry to place in the rewritten catalog.
        filename: Planned filename, or ``None`` for pass-through entries.
        status: ``downloaded``, ``copied``, ``skipped``, or ``failed``.
        path: File written into the bundle, when one was written.
        size: Number of bytes written.
        error: Failure description for ``failed`` results.

    Examples:
        >>> FetchResult(0, {"name": "x"}, None, "skipped").failed
        False
    """

    index: int
    entry: Any
    filename: Optional[str]
    status: str
    path: Optional[Path] = None
    size: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED


class _DoublingBackoff(wait_base):
    """Wait ``base * 2 ** (attempt - 1)`` seconds after the given attempt."""

    def __init__(self, base_seconds: float) -> None:
        self._base_seconds = base_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt_number = max(retry_state.attempt_number, 1)
        return self._base_seconds * (2 ** (attempt_number - 1))


def _status_code(exc: BaseException) -> Optional[int]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def download_with_retry(
    client: httpx.Client,
    url: str,
    *,
    max_attempts: int = 4,
    base_delay_ms: int = 1000,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[LoggerLike] = None,
) -> bytes:
    """Download ``url`` and return the full response body.

    An attempt fails when the request raises a transport error or the
    response status is not 2xx. After failed attempt ``k`` the call sleeps
    ``base_delay_ms * 2 ** (k - 1)`` milliseconds before trying again, up to
    ``max_attempts`` attempts in total.

    Args:
        client: HTTP client used for the GET requests.
        url: Remote schema location.
        max_attempts: Total number of attempts, including the first.
        base_delay_ms: Delay before the first retry, in milliseconds.
        sleep: Sleep function receiving seconds; injectable for tests.
        logger: Logger receiving one warning per retry.

    Returns:
        Raw response body.

    Raises:
        ValueError: If ``max_attempts`` is less than one.
        DownloadError: If every attempt failed; the last failure is chained.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    log = logger or logging.getLogger(LOGGER_NAME)

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        delay_ms = int(round(delay * 1000))
        log.warning(
            "Attempt %d failed for %s, retrying in %dms: %s",
            retry_state.attempt_number,
            url,
            delay_ms,
            exc,
            extra={
                "stage": "retry",
                "url": url,
                "attempt": retry_state.attempt_number,
                "delay_ms": delay_ms,
            },
        )

    retrying = Retrying(
        retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        wait=_DoublingBackoff(base_delay_ms / 1000.0),
        stop=stop_after_attempt(max_attempts),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=True,
    )

    try:
        for attempt in retrying:
            with attempt:
                response = client.get(url)
                response.raise_for_status()
                payload = response.content
    except _RETRYABLE_ERRORS as exc:
        raise DownloadError(
            f"Failed after {max_attempts} attempts: {exc}",
            url=url,
            attempts=max_attempts,
            status_code=_status_code(exc),
        ) from exc
    return payload


def resolve_entry(
    index: int,
    entry: Any,
    filename: Optional[str],
    *,
    schemas_dir: Path,
    schemas_subdir: str,
    client: httpx.Client,
    local_dir: Optional[Path] = None,
    retry: Optional[RetrySettings] = None,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[LoggerLike] = None,
    total: Optional[int] = None,
) -> FetchResult:
    """Produce the bundle content and rewritten entry for one catalog index.

    Args:
        index: Catalog position of ``entry``.
        entry: Source catalog entry.
        filename: Planned filename; ``None`` marks a pass-through entry.
        schemas_dir: Directory receiving the schema files.
        schemas_subdir: Name used in the rewritten relative ``url``.
        client: HTTP client for downloads.
        local_dir: Override directory consulted before the network.
        retry: Download retry policy; defaults to :class:`RetrySettings`.
        sleep: Sleep function used between download attempts.
        logger: Logger for progress and failure events.
        total: Catalog size, used only in progress messages.

    Returns:
        :class:`FetchResult` for ``index``. Never raises for per-entry failures.
    """

    log = logger or logging.getLogger(LOGGER_NAME)
    url = entry_url(entry)
    if filename is None or url is None:
        return FetchResult(index=index, entry=entry, filename=None, status=STATUS_SKIPPED)

    policy = retry or RetrySettings()
    destination = schemas_dir / filename
    extra = {"index": index, "url": url, "schema_file": filename}
    try:
        local_candidate = local_dir / filename if local_dir is not None else None
        if local_candidate is not None and local_candidate.is_file():
            log.info(
                "Copying local schema for %s: %s -> %s",
                url,
                local_candidate,
                destination,
                extra={**extra, "stage": "copy"},
            )
            atomic_copy(local_candidate, destination)
            status = STATUS_COPIED
        else:
            log.info(
                "Downloading %d/%s: %s -> %s",
                index + 1,
                total if total is not None else "?",
                url,
                destination,
                extra={**extra, "stage": "download"},
            )
            payload = download_with_retry(
                client,
                url,
                max_attempts=policy.max_attempts,
                base_delay_ms=policy.base_delay_ms,
                sleep=sleep,
                logger=log,
            )
            atomic_write_bytes(destination, payload)
            status = STATUS_DOWNLOADED
        size = destination.stat().st_size
    except Exception as exc:  # pylint: disable=broad-except
        log.error(
            "Failed to download %s: %s",
            url,
            exc,
            extra={**extra, "stage": "error", "error": str(exc)},
        )
        return FetchResult(
            index=index,
            entry=dict(entry),
            filename=filename,
            status=STATUS_FAILED,
            error=str(exc),
        )

    rewritten = dict(entry)
    rewritten["url"] = f"./{schemas_subdir}/{filename}"
    return FetchResult(
        index=index,
        entry=rewritten,
        filename=filename,
        status=status,
        path=destination,
        size=size,
    )
