# tests/test_app.py
import io
import json
import pytest
from unittest.mock import MagicMock
from wsgiref.util import setup_testing_defaults

from src.app import create_app, parse_log_lines
from src.config import Settings
from src.database.database import Database
from src.services.ssh_executor import RemoteCommandExecutor, CommandResult
from src.services.exceptions import TransportError

# ===================================================================
#  테스트를 위한 WSGI 호출 도우미 및 Fixture 설정
# ===================================================================

def jlist(*names):
    return json.dumps([
        {"name": name, "pid": 100 + i, "pm2_env": {"status": "online", "pm_cwd": f"/home/bitnami/{name}"}}
        for i, name in enumerate(names)
    ])

def ok(stdout=""):
    return CommandResult(success=True, exit_code=0, stdout=stdout, stderr="")

@pytest.fixture
def mock_executor() -> MagicMock:
    return MagicMock(spec=RemoteCommandExecutor)

@pytest.fixture
def app(tmp_path, mock_executor):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'app.db'}", default_project_root="/home/bitnami")
    database = Database(settings.database_url)
    yield create_app(settings, database, mock_executor)
    database.close()

def call(app, method, path, body=None, query=""):
    environ = {}
    setup_testing_defaults(environ)
    payload = json.dumps(body).encode("utf-8") if body is not None else b""
    environ.update({
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "CONTENT_LENGTH": str(len(payload)),
        "wsgi.input": io.BytesIO(payload),
    })
    captured = {}

    def start_response(status, headers):
        captured["status"] = status

    body_chunks = app(environ, start_response)
    status_code = int(captured["status"].split()[0])
    return status_code, json.loads(b"".join(body_chunks).decode("utf-8"))

# ===================================================================
#  프로젝트 API 테스트
# ===================================================================
class TestProjectApi:
    def test_health(self, app):
        status, body = call(app, "GET", "/api/health")

        assert status == 200
        assert body["status"] == "ok"

    def test_create_duplicate_project_returns_conflict(self, app):
        """시나리오: app1 생성 후 같은 이름으로 다시 생성하면 409를 반환합니다."""
        # === Act ===
        first_status, first = call(app, "POST", "/api/projects", {"name": "app1", "path": "/srv/app1"})
        second_status, second = call(app, "POST", "/api/projects", {"name": "app1", "path": "/srv/other"})

        # === Assert ===
        assert first_status == 201
        assert first["success"] is True
        assert first["project"]["id"] == "1"
        assert first["project"]["pm2Name"] == "app1"
        assert second_status == 409
        assert second == {"success": False, "error": "Project with this name already exists"}

    def test_create_project_requires_path(self, app):
        status, body = call(app, "POST", "/api/projects", {"name": "app1"})

        assert status == 400
        assert body["success"] is False

    def test_invalid_json_body(self, app):
        environ_body = "{not json"
        environ = {}
        setup_testing_defaults(environ)
        environ.update({
            "REQUEST_METHOD": "POST", "PATH_INFO": "/api/projects",
            "CONTENT_LENGTH": str(len(environ_body)), "wsgi.input": io.BytesIO(environ_body.encode()),
        })
        statuses = []
        app(environ, lambda status, headers: statuses.append(status))

        assert statuses == ["400 Bad Request"]

    def test_list_update_delete_project(self, app):
        call(app, "POST", "/api/projects", {"name": "app1", "path": "/srv/app1"})

        status, updated = call(app, "PUT", "/api/projects/1", {"description": "Main app", "buildSteps": ["npm ci"]})
        assert status == 200
        assert updated["project"]["description"] == "Main app"
        assert updated["project"]["buildSteps"] == [{"type": "command", "command": "npm ci"}]

        _, listed = call(app, "GET", "/api/projects")
        assert [p["name"] for p in listed["projects"]] == ["app1"]

        status, deleted = call(app, "DELETE", "/api/projects/1")
        assert status == 200
        assert deleted["success"] is True

        status, _ = call(app, "DELETE", "/api/projects/1")
        assert status == 404

    def test_clone_project(self, app, mock_executor):
        mock_executor.execute.side_effect = [ok("NOT_EXISTS\n"), ok("")]

        status, body = call(app, "POST", "/api/projects/clone", {
            "gitUrl": "https://github.com/acme/app2.git", "targetPath": "/home/bitnami/app2",
        })

        assert status == 201
        assert body["project"]["name"] == "app2"
        assert body["project"]["gitUrl"] == "https://github.com/acme/app2.git"

    def test_clone_into_existing_directory_returns_conflict(self, app, mock_executor):
        mock_executor.execute.return_value = ok("EXISTS\n")

        status, body = call(app, "POST", "/api/projects/clone", {
            "gitUrl": "https://github.com/acme/app2.git", "targetPath": "/home/bitnami/app2",
        })

        assert status == 409
        assert "already exists" in body["error"]

    def test_clone_failure_is_server_error_and_creates_nothing(self, app, mock_executor):
        """clone 명령이 실행되었으나 실패하면 500을 반환하고 레코드를 만들지 않는지 테스트합니다."""
        # === Arrange ===
        mock_executor.execute.side_effect = [
            ok("NOT_EXISTS\n"),
            CommandResult(success=False, exit_code=128, stdout="", stderr="fatal: repository not found\n"),
        ]

        # === Act ===
        status, body = call(app, "POST", "/api/projects/clone", {
            "gitUrl": "https://github.com/acme/missing.git", "targetPath": "/home/bitnami/missing",
        })
        _, listed = call(app, "GET", "/api/projects")

        # === Assert ===
        assert status == 500
        assert body == {"success": False, "error": "Failed to clone repository: fatal: repository not found"}
        assert listed["projects"] == []

    @pytest.mark.parametrize("target_path", ["myapp", 42])
    def test_clone_rejects_relative_or_non_string_target(self, app, mock_executor, target_path):
        status, body = call(app, "POST", "/api/projects/clone", {
            "gitUrl": "https://github.com/acme/app2.git", "targetPath": target_path,
        })

        assert status == 400
        assert body["success"] is False
        mock_executor.execute.assert_not_called()

    def test_unknown_route(self, app):
        status, body = call(app, "GET", "/api/nothing-here")

        assert status == 404
        assert body["success"] is False

# ===================================================================
#  PM2 API 테스트
# ===================================================================
class TestPm2Api:
    def test_process_status_not_found(self, app, mock_executor):
        """없는 프로세스 이름은 404, 전송 오류는 500으로 구분되는지 테스트합니다."""
        mock_executor.execute.return_value = ok(jlist("app1"))

        status, body = call(app, "GET", "/api/pm2/status/nope")
        assert status == 404
        assert body["error"] == "Process 'nope' not found"

        mock_executor.execute.side_effect = TransportError("Connection refused")
        status, body = call(app, "GET", "/api/pm2/status/nope")
        assert status == 500
        assert body == {"success": False, "error": "Process status failed: PM2 status failed: Connection refused"}

    def test_process_status_found(self, app, mock_executor):
        mock_executor.execute.return_value = ok(jlist("app1"))

        status, body = call(app, "GET", "/api/pm2/status/app1")

        assert status == 200
        assert body["process"]["name"] == "app1"
        assert body["process"]["status"] == "online"

    def test_status_parse_error_is_server_error(self, app, mock_executor):
        mock_executor.execute.return_value = ok("not json")

        status, body = call(app, "GET", "/api/pm2/status")

        assert status == 500
        assert body["success"] is False
        assert "Failed to parse PM2 output" in body["error"]

    def test_restart_reports_remote_failure_in_body(self, app, mock_executor):
        """원격 명령 실패는 HTTP 200과 success=False로 전달되는지 테스트합니다."""
        mock_executor.execute.return_value = CommandResult(
            success=False, exit_code=1, stdout="Process ghost not found, use start command instead\n", stderr=""
        )

        status, body = call(app, "POST", "/api/pm2/restart/ghost")

        assert status == 200
        assert body["success"] is False
        assert "not found" in body["output"]

    def test_start_with_working_directory(self, app, mock_executor):
        mock_executor.execute.return_value = ok()

        status, _ = call(app, "POST", "/api/pm2/start/new-app", {"cwd": "/home/bitnami/new-app"})

        assert status == 200
        assert "cd /home/bitnami/new-app" in mock_executor.execute.call_args.args[0]

    def test_logs_line_count_from_query(self, app, mock_executor):
        mock_executor.execute.return_value = ok("log line\n")

        status, body = call(app, "GET", "/api/logs/app1", query="lines=50")

        assert status == 200
        assert body["logs"] == "log line\n"
        assert "--lines 50" in mock_executor.execute.call_args.args[0]

    @pytest.mark.parametrize("raw, expected", [(None, 100), ("abc", 100), ("0", 100), ("25", 25)])
    def test_parse_log_lines(self, raw, expected):
        assert parse_log_lines(raw) == expected

    def test_sync_and_auto_map(self, app, mock_executor):
        """시나리오: sync로 불일치를 확인하고 auto-map 이후에는 unmapped가 없어야 합니다."""
        # === Arrange ===
        call(app, "POST", "/api/projects", {"name": "app1", "path": "/srv/app1"})
        call(app, "POST", "/api/projects", {"name": "app2", "path": "/srv/app2"})
        mock_executor.execute.return_value = ok(jlist("app1", "orphan"))

        # === Act ===
        _, before = call(app, "GET", "/api/pm2/sync")
        map_status, mapped = call(app, "POST", "/api/pm2/auto-map")
        _, after = call(app, "GET", "/api/pm2/sync")

        # === Assert ===
        assert [p["name"] for p in before["unmappedProcesses"]] == ["orphan"]
        assert [p["name"] for p in before["notRunningProjects"]] == ["app2"]
        assert before["totalPM2"] == 2 and before["totalDB"] == 2

        assert map_status == 200
        assert mapped["count"] == 1
        assert mapped["mapped"][0]["pm2Name"] == "orphan"
        assert mapped["mapped"][0]["path"] == "/home/bitnami/orphan"

        assert after["unmappedCount"] == 0
        assert after["totalDB"] == 3

    def test_build_unknown_project(self, app, mock_executor):
        status, body = call(app, "POST", "/api/build/ghost")

        assert status == 404
        assert body["error"] == "Project 'ghost' not found"
        mock_executor.execute.assert_not_called()

    def test_deploy_known_project(self, app, mock_executor):
        call(app, "POST", "/api/projects", {"name": "app1", "path": "/srv/app1", "pm2Name": "app1-prod"})
        mock_executor.execute.return_value = ok("deployed")

        status, body = call(app, "POST", "/api/deploy/app1")

        assert status == 200
        assert body == {"success": True, "output": "deployed", "error": ""}
        assert "npx pm2 restart app1-prod" in mock_executor.execute.call_args.args[0]

    def test_database_probe(self, app):
        status, body = call(app, "GET", "/api/system/database")

        assert status == 200
        assert body["database"]["connected"] is True
