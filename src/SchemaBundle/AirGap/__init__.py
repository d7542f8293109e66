"""Public API for the SchemaBundle air-gapped catalog packager.

The packager reads a schema catalog, resolves every referenced schema from a
local override directory or the network, writes the files into a bundle
directory, and emits a catalog whose ``url`` fields point at the local copies.

Example:
    >>> from SchemaBundle.AirGap import build_air_gapped_package, resolve_settings
    >>> report = build_air_gapped_package(resolve_settings(out="build"))  # doctest: +SKIP
"""

from __future__ import annotations

from .catalog import Catalog, assemble_catalog, load_catalog, write_catalog
from .errors import (
    AirGapError,
    DownloadError,
    FormatError,
    NotFoundError,
    OutputDirectoryError,
    UserConfigError,
)
from .fetch import FetchResult, download_with_retry, resolve_entry
from .pipeline import BuildReport, build_air_gapped_package, fetch_all
from .planning import (
    PlannedEntry,
    filename_from_url,
    plan_entries,
    plan_filenames,
    slugify_name,
)
from .settings import BuildSettings, HttpSettings, LoggingSettings, RetrySettings, resolve_settings

__all__ = [
    "AirGapError",
    "BuildReport",
    "BuildSettings",
    "Catalog",
    "DownloadError",
    "FetchResult",
    "FormatError",
    "HttpSettings",
    "LoggingSettings",
    "NotFoundError",
    "OutputDirectoryError",
    "PlannedEntry",
    "RetrySettings",
    "UserConfigError",
    "assemble_catalog",
    "build_air_gapped_package",
    "download_with_retry",
    "fetch_all",
    "filename_from_url",
    "load_catalog",
    "plan_entries",
    "plan_filenames",
    "resolve_entry",
    "resolve_settings",
    "slugify_name",
    "write_catalog",
]
