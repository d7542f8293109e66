# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.planning",
#   "purpose": "Derive deterministic, collision-free local filenames for catalog entries",
#   "sections": [
#     {"id": "slugify-name", "name": "slugify_name", "anchor": "function-slugify-name", "kind": "function"},
#     {"id": "filename-from-url", "name": "filename_from_url", "anchor": "function-filename-from-url", "kind": "function"},
#     {"id": "plan-filenames", "name": "plan_filenames", "anchor": "function-plan-filenames", "kind": "function"},
#     {"id": "plannedentry", "name": "PlannedEntry", "anchor": "class-plannedentry", "kind": "class"},
#     {"id": "plan-entries", "name": "plan_entries", "anchor": "function-plan-entries", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Filename planning for catalog entries.

Every entry receives its local filename before any download starts. Names are
assigned in catalog order, so collision suffixes depend only on the catalog
contents and never on which worker finishes first.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set
from urllib.parse import urlsplit

from .catalog import Catalog

__all__ = [
    "slugify_name",
    "filename_from_url",
    "entry_url",
    "plan_filenames",
    "PlannedEntry",
    "plan_entries",
]

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify_name(name: str) -> str:
    """Return a lowercase, hyphen-separated ``.json`` filename for ``name``.

    Examples:
        >>> slugify_name("My Schema (v2)")
        'my-schema-v2.json'
        >>> slugify_name("!!!")
        '.json'
    """

    slug = _NON_ALNUM_RE.sub("-", name.lower()).strip("-")
    return f"{slug}.json"


def filename_from_url(url: str) -> str:
    """Derive a filename from the last path segment of ``url``.

    The extension dot is slugified along with everything else, so
    ``https://example.com/a/foo.json`` yields ``foo-json.json``. Strings that
    do not parse as absolute URLs are slugified whole.

    Examples:
        >>> filename_from_url("https://example.com/schemas/foo.json?v=1")
        'foo-json.json'
        >>> filename_from_url("https://example.com/schemas/bar/")
        'bar-json.json'
    """

    try:
        parsed = urlsplit(url)
    except ValueError:
        return slugify_name(url)
    if not parsed.scheme:
        return slugify_name(url)

    filename = posixpath.basename(parsed.path.rstrip("/"))
    filename = filename.split("?")[0].split("#")[0]
    if not filename.lower().endswith(".json"):
        filename = filename + ".json"
    return slugify_name(filename)


def entry_url(entry: Any) -> Optional[str]:
    """Return the entry's usable ``url`` or ``None`` when it must pass through."""

    if not isinstance(entry, Mapping):
        return None
    url = entry.get("url")
    if not url or not isinstance(url, str):
        return None
    return url


def _suffixed(base: str, occurrence: int) -> str:
    """Insert ``-<occurrence>`` before the ``.json`` extension.

    Examples:
        >>> _suffixed("foo.json", 2)
        'foo-2.json'
        >>> _suffixed(".json", 2)
        '-2.json'
    """

    if base.endswith(".json"):
        stem, ext = base[: -len(".json")], ".json"
    else:
        stem, ext = posixpath.splitext(base)
    return f"{stem}-{occurrence}{ext}"


def plan_filenames(entries: Sequence[Any]) -> List[Optional[str]]:
    """Assign a unique local filename to every fetchable entry.

    Args:
        entries: Catalog ``schemas`` sequence.

    Returns:
        List parallel to ``entries`` holding the planned filename, or ``None``
        for entries that are not objects or lack a string ``url``.

    Examples:
        >>> plan_filenames([{"name": "Foo", "url": "a"}, {"name": "foo", "url": "b"}, 3])
        ['foo.json', 'foo-2.json', None]
    """

    filenames: List[Optional[str]] = []
    occurrences: Dict[str, int] = {}
    assigned: Set[str] = set()
    for entry in entries:
        url = entry_url(entry)
        if url is None:
            filenames.append(None)
            continue

        name = entry.get("name")
        if name and isinstance(name, str):
            base = slugify_name(name)
        else:
            base = filename_from_url(url)

        count = occurrences.get(base, 0) + 1
        candidate = base if count == 1 else _suffixed(base, count)
        # A suffixed name may equal another entry's base name ("foo-2.json").
        while candidate in assigned:
            count += 1
            candidate = _suffixed(base, count)
        occurrences[base] = count
        assigned.add(candidate)
        filenames.append(candidate)
    return filenames


@dataclass(frozen=True)
class PlannedEntry:
    """Display record pairing a catalog entry with its planned filename."""

    index: int
    name: Optional[str]
    url: Optional[str]
    filename: Optional[str]

    @property
    def skipped(self) -> bool:
        return self.filename is None


def plan_entries(catalog: Catalog) -> List[PlannedEntry]:
    """Plan filenames for ``catalog`` and pair them with entry metadata."""

    planned: List[PlannedEntry] = []
    for index, (entry, filename) in enumerate(
        zip(catalog.schemas, plan_filenames(catalog.schemas))
    ):
        name = entry.get("name") if isinstance(entry, Mapping) else None
        planned.append(
            PlannedEntry(
                index=index,
                name=name if isinstance(name, str) else None,
                url=entry_url(entry),
                filename=filename,
            )
        )
    return planned
