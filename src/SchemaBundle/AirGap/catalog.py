# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.catalog",
#   "purpose": "Load the source catalog, reassemble rewritten entries, and persist the bundle catalog",
#   "sections": [
#     {"id": "catalog", "name": "Catalog", "anchor": "class-catalog", "kind": "class"},
#     {"id": "load-catalog", "name": "load_catalog", "anchor": "function-load-catalog", "kind": "function"},
#     {"id": "assemble-catalog", "name": "assemble_catalog", "anchor": "function-assemble-catalog", "kind": "function"},
#     {"id": "write-catalog", "name": "write_catalog", "anchor": "function-write-catalog", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Catalog loading and reassembly.

The loader interprets only the ``schemas`` array of the source document;
every other top-level field is carried through to the rewritten catalog
untouched. Reassembly places each fetch result back at the index it was
planned for, so the output order never depends on which downloads finished
first.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Sequence, Tuple

from .errors import FormatError, NotFoundError, OutputDirectoryError
from .filesystem import atomic_write_bytes

if TYPE_CHECKING:  # pragma: no cover - import only when type checking
    from .fetch import FetchResult

__all__ = [
    "Catalog",
    "load_catalog",
    "assemble_catalog",
    "write_catalog",
]


@dataclass(frozen=True)
class Catalog:
    """Parsed catalog document.

    Attributes:
        path: Location the document was read from.
        document: Top-level mapping exactly as parsed.

    Examples:
        >>> catalog = Catalog(Path("catalog.json"), {"schemas": []})
        >>> catalog.schemas
        []
    """

    path: Path
    document: Dict[str, Any]

    @property
    def schemas(self) -> List[Any]:
        """Ordered entry sequence of the catalog."""
        return self.document["schemas"]

    def __len__(self) -> int:
        return len(self.schemas)


def load_catalog(path: Path | str) -> Catalog:
    """Read and validate the source catalog.

    Args:
        path: Path to the catalog JSON document.

    Returns:
        :class:`Catalog` wrapping the parsed document.

    Raises:
        NotFoundError: If ``path`` does not exist.
        FormatError: If the path cannot be read, the document is not JSON or
            not an object, or it lacks an array-valued ``schemas`` field.
    """

    catalog_path = Path(path)
    if not catalog_path.exists():
        raise NotFoundError(catalog_path)

    try:
        text = catalog_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError(f"Catalog {catalog_path} is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise FormatError(f"Catalog {catalog_path} cannot be read: {exc}") from exc

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Catalog {catalog_path} is not valid JSON: {exc}") from exc

    if not isinstance(document, dict) or not isinstance(document.get("schemas"), list):
        raise FormatError('Unexpected catalog format: missing "schemas" array')

    return Catalog(path=catalog_path, document=document)


def assemble_catalog(
    catalog: Catalog, results: Sequence["FetchResult"]
) -> Tuple[Dict[str, Any], int]:
    """Rebuild the catalog from per-entry results.

    Args:
        catalog: Source catalog the results were produced from.
        results: One result per catalog index, in any order.

    Returns:
        Tuple ``(document, failures)`` where ``document`` is a shallow copy of
        the source document with ``schemas`` replaced, and ``failures`` counts
        the failed results.

    Raises:
        ValueError: If the results do not cover every catalog index exactly once.
    """

    total = len(catalog.schemas)
    slots: List[Any] = [None] * total
    seen = [False] * total
    failures = 0
    for result in results:
        if not 0 <= result.index < total or seen[result.index]:
            raise ValueError(f"unexpected result index {result.index} for {total} entries")
        seen[result.index] = True
        slots[result.index] = result.entry
        if result.failed:
            failures += 1

    if not all(seen):
        missing = [index for index, present in enumerate(seen) if not present]
        raise ValueError(f"missing results for catalog indices {missing}")

    document = dict(catalog.document)
    document["schemas"] = slots
    return document, failures


def write_catalog(path: Path, document: Dict[str, Any]) -> Path:
    """Persist ``document`` as two-space indented JSON with a trailing newline.

    Raises:
        OutputDirectoryError: If the catalog file cannot be written.
    """

    text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    try:
        atomic_write_bytes(path, text.encode("utf-8"))
    except OSError as exc:
        raise OutputDirectoryError(f"Cannot write catalog {path}: {exc}") from exc
    return path
