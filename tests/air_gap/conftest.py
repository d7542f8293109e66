"""Shared fixtures for the air_gap test suite."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

from SchemaBundle.AirGap.settings import BuildSettings, resolve_settings

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records every requested URL (thread-safe)."""

    def __init__(self, handler: Handler) -> None:
        self.requests: List[str] = []
        self._lock = threading.Lock()

        def _recording_handler(request: httpx.Request) -> httpx.Response:
            with self._lock:
                self.requests.append(str(request.url))
            return handler(request)

        super().__init__(_recording_handler)

    def count(self, url: str) -> int:
        with self._lock:
            return sum(1 for requested in self.requests if requested == url)


@pytest.fixture
def write_catalog_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a catalog document into ``tmp_path`` and return its path."""

    def _write(document: Any, name: str = "catalog.json") -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(document, (bytes, str)):
            payload = document if isinstance(document, bytes) else document.encode("utf-8")
            path.write_bytes(payload)
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def local_dir(tmp_path: Path) -> Path:
    """Empty local override directory."""

    path = tmp_path / "local"
    path.mkdir()
    return path


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "build"


@pytest.fixture
def make_settings(out_dir: Path, local_dir: Path) -> Callable[..., BuildSettings]:
    """Build settings that ignore the environment and never sleep between retries."""

    def _make(catalog: Path, **overrides: Any) -> BuildSettings:
        values: Dict[str, Any] = {
            "catalog": catalog,
            "out": out_dir,
            "local_dir": local_dir,
            "base_delay_ms": 0,
        }
        values.update(overrides)
        return resolve_settings(use_env=False, **values)

    return _make


@pytest.fixture
def make_client() -> Callable[[Handler], httpx.Client]:
    """Create HTTPX clients backed by a recording mock transport."""

    clients: List[httpx.Client] = []

    def _make(handler: Handler) -> httpx.Client:
        client = httpx.Client(transport=RecordingTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Callable[[float], None]:
    """Sleep replacement that records requested delays in seconds."""

    def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep
