# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.errors",
#   "purpose": "Define the exception hierarchy used across catalog loading, fetching, and assembly",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "catalog", "name": "Catalog Errors", "anchor": "CAT", "kind": "api"},
#     {"id": "download", "name": "Download Errors", "anchor": "DWN", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across air-gapped bundle construction.

Building a bundle spans catalog parsing, HTTP retrieval, and filesystem
writes. Failures fall into two groups: fatal errors that abort the whole run
(missing or malformed catalog, output tree that cannot be created) and
per-entry errors that are absorbed by the fetch engine and only surface in
the failure count. Both groups derive from :class:`AirGapError` so callers can
catch everything the packager raises with a single clause.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "AirGapError",
    "NotFoundError",
    "FormatError",
    "OutputDirectoryError",
    "DownloadError",
    "UserConfigError",
]


class AirGapError(RuntimeError):
    """Base exception for air-gapped bundle failures."""


class NotFoundError(AirGapError):
    """Raised when the source catalog document does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Catalog not found: {path}")
        self.path = path


class FormatError(AirGapError):
    """Raised when the catalog cannot be parsed or lacks a ``schemas`` array."""


class OutputDirectoryError(AirGapError):
    """Raised when the output directory tree cannot be created."""


class DownloadError(AirGapError):
    """Raised when a schema download fails on every permitted attempt.

    The final underlying failure is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        attempts: int,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.status_code = status_code


class UserConfigError(RuntimeError):
    """Raised when CLI arguments or environment overrides are invalid."""

