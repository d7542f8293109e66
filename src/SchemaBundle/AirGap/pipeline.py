# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.pipeline",
#   "purpose": "Bounded-concurrency fetch scheduler and end-to-end bundle build",
#   "sections": [
#     {"id": "buildreport", "name": "BuildReport", "anchor": "class-buildreport", "kind": "class"},
#     {"id": "fetch-all", "name": "fetch_all", "anchor": "function-fetch-all", "kind": "function"},
#     {"id": "build-air-gapped-package", "name": "build_air_gapped_package", "anchor": "function-build-air-gapped-package", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""End-to-end construction of an air-gapped schema bundle.

The build runs four stages strictly in order: load the catalog, plan every
filename, fetch all entries through a bounded worker pool, then reassemble and
write the rewritten catalog. Only the fetch stage is concurrent. Each worker
writes a distinct pre-planned file and returns its own result object; the
failure count is reduced from those results after the pool drains, so no
state is shared between workers.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import httpx

from SchemaBundle.concurrency import create_executor

from .catalog import Catalog, assemble_catalog, load_catalog, write_catalog
from .fetch import (
    STATUS_COPIED,
    STATUS_DOWNLOADED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    FetchResult,
    LoggerLike,
    resolve_entry,
)
from .filesystem import ensure_directory
from .logging_config import LOGGER_NAME, BuildLoggerAdapter, generate_correlation_id
from .network import create_http_client
from .planning import plan_filenames
from .settings import BuildSettings, RetrySettings, resolve_settings

__all__ = ["BuildReport", "fetch_all", "build_air_gapped_package"]


@dataclass
class BuildReport:
    """Summary of a bundle build.

    Attributes:
        total: Number of catalog entries processed.
        failures: Entries whose content could not be resolved.
        downloaded: Entries fetched from the network.
        copied: Entries copied from the local override directory.
        skipped: Entries passed through without a ``url``.
        bytes_written: Total size of the schema files written.
        catalog_path: Rewritten catalog location (``None`` on dry runs).
        schemas_dir: Directory holding the schema files.
        elapsed_seconds: Wall-clock duration of the build.
        dry_run: ``True`` when only the filename plan was computed.
        planned: Planned filename per catalog index.
        results: Per-entry fetch results in catalog order.
    """

    total: int
    failures: int = 0
    downloaded: int = 0
    copied: int = 0
    skipped: int = 0
    bytes_written: int = 0
    catalog_path: Optional[Path] = None
    schemas_dir: Optional[Path] = None
    elapsed_seconds: float = 0.0
    dry_run: bool = False
    planned: List[Optional[str]] = field(default_factory=list)
    results: List[FetchResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failures == 0

    @property
    def written(self) -> int:
        return self.downloaded + self.copied


def fetch_all(
    catalog: Catalog,
    filenames: Sequence[Optional[str]],
    *,
    schemas_dir: Path,
    schemas_subdir: str,
    client: httpx.Client,
    local_dir: Optional[Path] = None,
    retry: Optional[RetrySettings] = None,
    concurrency: int = 10,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[LoggerLike] = None,
) -> List[FetchResult]:
    """Resolve every catalog entry with at most ``concurrency`` in flight.

    Tasks are submitted eagerly until the ceiling is reached; the scheduler
    then waits for any task to finish before submitting more. A failing task
    never cancels its siblings.

    Args:
        catalog: Source catalog.
        filenames: Planned filename per catalog index.
        schemas_dir: Directory receiving the schema files.
        schemas_subdir: Name used in rewritten relative URLs.
        client: Shared HTTP client.
        local_dir: Override directory consulted before the network.
        retry: Download retry policy.
        concurrency: Maximum number of in-flight entries.
        sleep: Sleep function used between download attempts.
        logger: Logger for progress and failure events.

    Returns:
        One :class:`FetchResult` per catalog index, ordered by index.
    """

    entries = catalog.schemas
    total = len(entries)
    if len(filenames) != total:
        raise ValueError(f"expected {total} planned filenames, got {len(filenames)}")
    if total == 0:
        return []

    log = logger or logging.getLogger(LOGGER_NAME)
    max_workers = max(1, concurrency)
    results: Dict[int, FetchResult] = {}
    pending: Dict[Future[FetchResult], int] = {}
    indices: Iterator[int] = iter(range(total))
    exhausted = False

    log.info(
        "starting batch of %d entries with %d workers",
        total,
        max_workers,
        extra={"stage": "batch"},
    )

    with create_executor(max_workers) as executor:

        def _submit(index: int) -> None:
            future = executor.submit(
                resolve_entry,
                index,
                entries[index],
                filenames[index],
                schemas_dir=schemas_dir,
                schemas_subdir=schemas_subdir,
                client=client,
                local_dir=local_dir,
                retry=retry,
                sleep=sleep,
                logger=log,
                total=total,
            )
            pending[future] = index

        while pending or not exhausted:
            while not exhausted and len(pending) < max_workers:
                try:
                    index = next(indices)
                except StopIteration:
                    exhausted = True
                    break
                _submit(index)

            if not pending:
                break

            done, _ = wait(list(pending), return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                try:
                    results[index] = future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    # resolve_entry absorbs entry errors; anything reaching here
                    # still only fails its own index.
                    log.error(
                        "entry worker crashed: %s",
                        exc,
                        extra={"stage": "error", "index": index, "error": str(exc)},
                    )
                    entry = entries[index]
                    results[index] = FetchResult(
                        index=index,
                        entry=dict(entry) if isinstance(entry, dict) else entry,
                        filename=filenames[index],
                        status=STATUS_FAILED,
                        error=str(exc),
                    )

    return [results[index] for index in range(total)]


def _summarize(report: BuildReport, results: Sequence[FetchResult]) -> None:
    for result in results:
        if result.status == STATUS_DOWNLOADED:
            report.downloaded += 1
        elif result.status == STATUS_COPIED:
            report.copied += 1
        elif result.status == STATUS_SKIPPED:
            report.skipped += 1
        report.bytes_written += result.size


def build_air_gapped_package(
    settings: Optional[BuildSettings] = None,
    *,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
    dry_run: bool = False,
) -> BuildReport:
    """Build the air-gapped bundle described by ``settings``.

    Args:
        settings: Resolved build configuration; defaults plus environment
            overrides when omitted.
        client: HTTP client to use. When omitted a client is created from
            ``settings.http`` and closed before returning.
        sleep: Sleep function used between download attempts.
        logger: Base logger; defaults to the ``SchemaBundle.AirGap`` logger.
        dry_run: Plan filenames only; no directories, files, or requests.

    Returns:
        :class:`BuildReport` describing the run. Per-entry failures are
        reported in ``failures`` and never raised.

    Raises:
        NotFoundError: If the source catalog does not exist.
        FormatError: If the catalog lacks a ``schemas`` array.
        OutputDirectoryError: If the output tree or catalog cannot be written.
    """

    active = settings or resolve_settings()
    log = BuildLoggerAdapter(
        logger or logging.getLogger(LOGGER_NAME),
        {"correlation_id": generate_correlation_id()},
    )
    started = time.monotonic()

    catalog = load_catalog(active.catalog)
    filenames = plan_filenames(catalog.schemas)
    report = BuildReport(total=len(catalog.schemas), planned=filenames, dry_run=dry_run)

    if dry_run:
        for index, filename in enumerate(filenames):
            log.info(
                "planned %d: %s",
                index,
                filename if filename is not None else "(pass-through)",
                extra={"stage": "plan", "index": index, "schema_file": filename},
            )
        report.elapsed_seconds = time.monotonic() - started
        return report

    ensure_directory(active.out)
    schemas_dir = ensure_directory(active.schemas_path)
    report.schemas_dir = schemas_dir

    owns_client = client is None
    http_client = client or create_http_client(active.http, max_connections=active.concurrency)
    try:
        results = fetch_all(
            catalog,
            filenames,
            schemas_dir=schemas_dir,
            schemas_subdir=active.schemas_dir,
            client=http_client,
            local_dir=active.local_dir,
            retry=active.retry,
            concurrency=active.concurrency,
            sleep=sleep,
            logger=log,
        )
    finally:
        if owns_client:
            http_client.close()

    document, failures = assemble_catalog(catalog, results)
    report.catalog_path = write_catalog(active.catalog_output_path, document)
    report.failures = failures
    report.results = results
    _summarize(report, results)
    report.elapsed_seconds = time.monotonic() - started

    if failures > 0:
        log.warning(
            "Completed with %d download failures.",
            failures,
            extra={"stage": "summary"},
        )
    else:
        log.info(
            "Build complete. Wrote %s and %d schemas to %s",
            report.catalog_path,
            report.written,
            schemas_dir,
            extra={"stage": "summary"},
        )
    return report
