"""Tests for the Typer command-line interface."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from SchemaBundle.AirGap import pipeline
from SchemaBundle.AirGap.cli import EXIT_CONFIG, EXIT_FATAL, CliContext, app
from SchemaBundle.AirGap.logging_config import LOGGER_NAME

runner = CliRunner()

EXAMPLE_URL = "https://example.com/example.json"


def _json_tail(output: str):
    """Parse the JSON document that ends the command output."""
    starts = [index for index in (output.find("{\n"), output.find("[\n")) if index >= 0]
    return json.loads(output[min(starts):])


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    for name in (
        "SCHEMABUNDLE_CONCURRENCY",
        "SCHEMABUNDLE_OUT",
        "SCHEMABUNDLE_LOG_DIR",
        "SCHEMABUNDLE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_airgap_managed", False):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def mock_network(monkeypatch):
    """Route the CLI's HTTP client through a mock transport."""

    calls = []

    def install(handler):
        def factory(settings, *, max_connections=10):
            def recording(request: httpx.Request) -> httpx.Response:
                calls.append(str(request.url))
                return handler(request)

            return httpx.Client(transport=httpx.MockTransport(recording))

        monkeypatch.setattr(pipeline, "create_http_client", factory)
        return calls

    return install


def _build_args(catalog: Path, out: Path, local_dir: Path, *extra: str):
    return [
        "build",
        "--catalog",
        str(catalog),
        "--out",
        str(out),
        "--local-dir",
        str(local_dir),
        "--base-delay-ms",
        "0",
        *extra,
    ]


class TestBuildCommand:
    def test_build_writes_bundle(self, write_catalog_file, out_dir, local_dir, mock_network) -> None:
        calls = mock_network(lambda request: httpx.Response(200, content=b'{"ok": 1}'))
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})

        result = runner.invoke(app, _build_args(catalog, out_dir, local_dir))

        assert result.exit_code == 0, result.output
        assert calls == [EXAMPLE_URL]
        written = json.loads((out_dir / "catalog.json").read_text(encoding="utf-8"))
        assert written["schemas"][0]["url"] == "./schemas/example.json"
        assert (out_dir / "schemas" / "example.json").read_bytes() == b'{"ok": 1}'

    def test_failures_still_exit_zero(
        self, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        mock_network(lambda request: httpx.Response(500))
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})

        result = runner.invoke(
            app,
            _build_args(catalog, out_dir, local_dir, "--max-attempts", "2", "--format", "json"),
        )

        assert result.exit_code == 0, result.output
        report = _json_tail(result.stdout)
        assert report["failures"] == 1
        assert report["total"] == 1
        assert report["failed_entries"][0]["filename"] == "example.json"
        written = json.loads((out_dir / "catalog.json").read_text(encoding="utf-8"))
        assert written["schemas"][0]["url"] == EXAMPLE_URL

    def test_local_overrides_need_no_network(
        self, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        calls = mock_network(lambda request: httpx.Response(500))
        (local_dir / "example.json").write_bytes(b"{}")
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})

        result = runner.invoke(app, _build_args(catalog, out_dir, local_dir, "--format", "json"))

        assert result.exit_code == 0, result.output
        assert calls == []
        assert _json_tail(result.stdout)["copied"] == 1

    def test_missing_catalog_exits_fatal(self, tmp_path, out_dir, local_dir) -> None:
        result = runner.invoke(app, _build_args(tmp_path / "missing.json", out_dir, local_dir))

        assert result.exit_code == EXIT_FATAL
        assert not out_dir.exists()

    def test_catalog_directory_exits_fatal(self, tmp_path, out_dir, local_dir) -> None:
        catalog_dir = tmp_path / "catalog-dir"
        catalog_dir.mkdir()

        result = runner.invoke(app, _build_args(catalog_dir, out_dir, local_dir))

        assert result.exit_code == EXIT_FATAL
        assert isinstance(result.exception, SystemExit)
        assert not out_dir.exists()

    def test_unwritable_output_catalog_exits_fatal(
        self, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        mock_network(lambda request: httpx.Response(200, content=b"{}"))
        (out_dir / "catalog.json").mkdir(parents=True)
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})

        result = runner.invoke(app, _build_args(catalog, out_dir, local_dir))

        assert result.exit_code == EXIT_FATAL
        assert isinstance(result.exception, SystemExit)

    def test_invalid_configuration_exits_config(self, write_catalog_file, out_dir, local_dir) -> None:
        catalog = write_catalog_file({"schemas": []})

        result = runner.invoke(
            app, _build_args(catalog, out_dir, local_dir, "--concurrency", "0")
        )

        assert result.exit_code == EXIT_CONFIG
        assert not out_dir.exists()

    def test_dry_run_touches_nothing(
        self, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        calls = mock_network(lambda request: httpx.Response(200))
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})

        result = runner.invoke(app, _build_args(catalog, out_dir, local_dir, "--dry-run"))

        assert result.exit_code == 0, result.output
        assert calls == []
        assert not out_dir.exists()

    def test_log_dir_receives_json_lines(
        self, tmp_path, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        mock_network(lambda request: httpx.Response(200, content=b"{}"))
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})
        log_dir = tmp_path / "logs"

        result = runner.invoke(
            app, ["-v", "--log-dir", str(log_dir), *_build_args(catalog, out_dir, local_dir)]
        )

        assert result.exit_code == 0, result.output
        log_files = list(log_dir.glob("airgap-*.jsonl"))
        assert len(log_files) == 1
        records = [json.loads(line) for line in log_files[0].read_text().splitlines()]
        assert any(record.get("stage") == "summary" for record in records)
        assert len({record["correlation_id"] for record in records if "correlation_id" in record}) == 1


class TestPlanCommand:
    def test_plan_json_lists_filenames(self, write_catalog_file) -> None:
        catalog = write_catalog_file(
            {
                "schemas": [
                    {"name": "Foo", "url": "https://a/foo.json"},
                    {"name": "foo", "url": "https://b/foo.json"},
                    {"name": "no url"},
                ]
            }
        )

        result = runner.invoke(app, ["plan", "--catalog", str(catalog), "--format", "json"])

        assert result.exit_code == 0, result.output
        rows = _json_tail(result.stdout)
        assert [row["filename"] for row in rows] == ["foo.json", "foo-2.json", None]
        assert rows[2]["url"] is None

    def test_plan_table(self, write_catalog_file) -> None:
        catalog = write_catalog_file({"schemas": [{"name": "Foo", "url": "https://a/foo.json"}]})

        result = runner.invoke(app, ["plan", "--catalog", str(catalog)])

        assert result.exit_code == 0, result.output
        assert "foo.json" in result.stdout

    def test_plan_missing_catalog(self, tmp_path) -> None:
        result = runner.invoke(app, ["plan", "--catalog", str(tmp_path / "missing.json")])

        assert result.exit_code == EXIT_FATAL


class TestGlobalOptions:
    def test_default_verbosity_logs_warnings_only(
        self, tmp_path, write_catalog_file, out_dir, local_dir, mock_network
    ) -> None:
        mock_network(lambda request: httpx.Response(200, content=b"{}"))
        catalog = write_catalog_file({"schemas": [{"name": "Example", "url": EXAMPLE_URL}]})
        log_dir = tmp_path / "logs"

        result = runner.invoke(
            app, ["--log-dir", str(log_dir), *_build_args(catalog, out_dir, local_dir)]
        )

        assert result.exit_code == 0, result.output
        (log_file,) = log_dir.glob("airgap-*.jsonl")
        levels = {json.loads(line)["level"] for line in log_file.read_text().splitlines()}
        assert "INFO" not in levels

    def test_single_verbose_flag_enables_info(self) -> None:
        assert CliContext(verbosity=0).log_level is None
        assert CliContext(verbosity=1).log_level == "INFO"
        assert CliContext(verbosity=2).log_level == "DEBUG"

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert result.stdout.startswith("schemabundle ")

    def test_rejects_unknown_format(self, write_catalog_file) -> None:
        catalog = write_catalog_file({"schemas": []})

        result = runner.invoke(app, ["plan", "--catalog", str(catalog), "--format", "xml"])

        assert result.exit_code != 0
