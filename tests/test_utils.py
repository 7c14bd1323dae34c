import logging

from click.testing import CliRunner
from fastapi.testclient import TestClient

from kitconsole.cli import main as cli
from kitconsole.config import Settings, settings
from kitconsole.logger import CompactFilter, CompactFormatter
from kitconsole.main import app
from kitconsole.plugins.packages import load_known_plugins
from kitconsole.utils.request_id import REQUEST_ID_HEADER, accept_request_id, request_id_var

from .conftest import write_manifest


def make_record(msg, level=logging.INFO, name="kitconsole.plugins.status"):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


class TestCompactFilter:
    def test_processing_polls_dropped(self):
        record = make_record("status poll install test-package: processing", logging.DEBUG)

        assert not CompactFilter().filter(record)

    def test_completed_poll_kept(self):
        record = make_record("status poll install test-package: completed", logging.DEBUG)

        assert CompactFilter().filter(record)

    def test_record_untouched(self):
        record = make_record("cwd=/home/alice/prototype")

        CompactFilter().filter(record)

        assert record.msg == "cwd=/home/alice/prototype"
        assert record.name == "kitconsole.plugins.status"


class TestCompactFormatter:
    def test_home_directory_shortened(self):
        formatter = CompactFormatter("%(name)s %(message)s")
        record = make_record("cwd=/home/alice/prototype")

        assert formatter.format(record) == "plugins.status cwd=~/prototype"

    def test_original_record_unchanged(self):
        record = make_record("cwd=/home/alice/prototype")

        CompactFormatter("%(name)s %(message)s").format(record)

        assert record.name == "kitconsole.plugins.status"
        assert record.msg == "cwd=/home/alice/prototype"

    def test_request_id_prefix(self):
        token = request_id_var.set("abcdef1234567890")
        try:
            line = CompactFormatter("%(message)s").format(make_record("Running npm"))
        finally:
            request_id_var.reset(token)

        assert line == "[abcdef12] Running npm"


class TestRequestId:
    def test_client_id_accepted(self):
        assert accept_request_id("browser-0001") == "browser-0001"

    def test_bad_client_id_replaced(self):
        rid = accept_request_id("../../etc/passwd")

        assert rid != "../../etc/passwd"
        assert len(rid) == 12

    def test_header_echoed(self):
        response = TestClient(app).get("/health/live", headers={REQUEST_ID_HEADER: "poll-12345678"})

        assert response.headers[REQUEST_ID_HEADER] == "poll-12345678"


class TestSettings:
    def test_relative_paths_resolve_against_project(self, tmp_path):
        config = Settings(PROJECT_DIR=tmp_path, LOG_DIR="logs", NPM_REGISTRY_URL="https://r.test/")

        assert config.log_dir == tmp_path.resolve() / "logs"
        assert config.known_plugins_path == tmp_path.resolve() / "known-plugins.json"
        assert config.NPM_REGISTRY_URL == "https://r.test"

    def test_development_only_locally(self):
        assert Settings(ENVIRONMENT="local").IS_DEVELOPMENT
        assert not Settings(ENVIRONMENT="production").IS_DEVELOPMENT


class TestCli:
    def test_init_creates_catalog(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "PROJECT_DIR", tmp_path)

        result = CliRunner().invoke(cli, ["init"])

        assert result.exit_code == 0
        known = load_known_plugins(tmp_path / "known-plugins.json")
        assert known.available == []

    def test_init_keeps_existing_catalog(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "PROJECT_DIR", tmp_path)
        (tmp_path / "known-plugins.json").write_text('{"plugins": {"available": ["a"]}}')

        result = CliRunner().invoke(cli, ["init"])

        assert result.exit_code == 0
        assert load_known_plugins(tmp_path / "known-plugins.json").available == ["a"]

    def test_status_of_local_plugin(self, project_dir, monkeypatch):
        monkeypatch.setattr(settings, "PROJECT_DIR", project_dir)
        write_manifest(project_dir, {"my-plugin": "file:../my-plugin"})

        waiting = CliRunner().invoke(cli, ["status", "install", "my-plugin"])
        done = CliRunner().invoke(cli, ["status", "install", "my-plugin", "--restarted"])

        assert waiting.exit_code == 0
        assert "processing" in waiting.output
        assert done.exit_code == 0
        assert "completed" in done.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["version"])

        assert result.exit_code == 0
        assert "kitconsole" in result.output
