# src/app.py
from datetime import datetime, timezone
from socketserver import ThreadingMixIn
from urllib.parse import parse_qs, unquote
from wsgiref.simple_server import make_server, WSGIServer
import json
import logging
import re
import sys

from src.config import Settings
from src.database.database import Database
from src.database.db_init import initialize_db
from src.repositories.sqlalchemy import SqlalchemyProjectRepository
from src.services.ssh_executor import RemoteCommandExecutor
from src.services.pm2_service import Pm2Service
from src.services.project_service import ProjectService
from src.services.sync_service import SyncService
from src.services.deploy_service import DeployService
from src.services.exceptions import *
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_LOG_LINES = 100

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValueError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object.")
    return data

def get_query_param(environ, name, default=None):
    values = parse_qs(environ.get("QUERY_STRING", "")).get(name)
    return values[0] if values else default

def parse_log_lines(raw):
    # 숫자가 아니거나 0 이하이면 기본값을 사용합니다.
    try:
        lines = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LOG_LINES
    return lines if lines > 0 else DEFAULT_LOG_LINES

def json_response(status, payload):
    return status, json.dumps(payload, default=str)

def handle_exception(e):
    error_map = {
        ValueError: "400 Bad Request",
        ProjectNotFoundError: "404 Not Found",
        ProcessNotFoundError: "404 Not Found",
        ProjectAlreadyExistsError: "409 Conflict",
        DirectoryExistsError: "409 Conflict",
    }
    status = error_map.get(type(e), "500 Internal Server Error")
    if status.startswith("500"):
        logger.error("Request failed: %s", e, exc_info=e)
    return json_response(status, {"success": False, "error": str(e)})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

NAME = r"([^/]+)"

ROUTES = []

def route(method, pattern):
    def decorator(handler):
        ROUTES.append((method, re.compile(f"^{pattern}$"), handler))
        return handler
    return decorator

def create_app(settings=None, database=None, executor=None):
    """
    WSGI 애플리케이션을 생성합니다.

    Database와 RemoteCommandExecutor는 한 번만 만들어 모든 요청이 공유하고,
    DB 세션과 리포지토리, 서비스는 요청마다 새로 만듭니다.

    Args:
        settings: 애플리케이션 설정. 없으면 환경 변수에서 읽습니다.
        database: 프로젝트 저장소. 없으면 settings.database_url로 생성합니다.
        executor: 원격 명령 실행기. 없으면 settings의 SSH 정보로 생성합니다.
    """
    settings = settings or Settings.from_env()
    database = database or Database(settings.database_url)
    executor = executor or RemoteCommandExecutor.from_settings(settings)

    def application(environ, start_response):
        try:
            with database.session() as db_session:
                # 1. 의존성 생성 (Repositories -> Services)
                project_repo = SqlalchemyProjectRepository(db_session)
                pm2_service = Pm2Service(executor, settings.pm2_home)
                project_service = ProjectService(project_repo, pm2_service)

                # 2. 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
                environ['services'] = {
                    'pm2': pm2_service,
                    'project': project_service,
                    'sync': SyncService(pm2_service, project_repo, settings.default_project_root),
                    'deploy': DeployService(project_service, pm2_service),
                }
                environ['database'] = database

                # 3. 라우팅 및 핸들러 실행
                path = environ.get("PATH_INFO", "")
                method = environ.get("REQUEST_METHOD", "")

                handler, path_args = None, []
                for route_method, pattern, route_handler in ROUTES:
                    if method == route_method and (match := pattern.match(path)):
                        handler, path_args = route_handler, [unquote(arg) for arg in match.groups()]
                        break

                if handler:
                    status, response_body = handler(environ, *path_args)
                else:
                    status, response_body = json_response('404 Not Found', {'success': False, 'error': 'Not Found'})

        except Exception as e:
            status, response_body = handle_exception(e)

        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]

    return application

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

@route('GET', r'/api/health')
def health_handler(environ):
    return json_response('200 OK', {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})

@route('GET', r'/api/projects')
def list_projects_handler(environ):
    projects = environ['services']['project'].list_projects()
    return json_response('200 OK', {'success': True, 'projects': projects})

@route('POST', r'/api/projects')
def create_project_handler(environ):
    data = get_request_data(environ)
    project = environ['services']['project'].create_project(data)
    return json_response('201 Created', {'success': True, 'project': project})

@route('POST', r'/api/projects/clone')
def clone_project_handler(environ):
    data = get_request_data(environ)
    result = environ['services']['project'].clone_project(data)
    return json_response('201 Created', {'success': True, **result})

@route('GET', r'/api/projects/([0-9]+)')
def get_project_handler(environ, project_id):
    project = environ['services']['project'].get_project(project_id)
    return json_response('200 OK', {'success': True, 'project': project})

@route('PUT', r'/api/projects/([0-9]+)')
def update_project_handler(environ, project_id):
    data = get_request_data(environ)
    project = environ['services']['project'].update_project(project_id, data)
    return json_response('200 OK', {'success': True, 'project': project})

@route('DELETE', r'/api/projects/([0-9]+)')
def delete_project_handler(environ, project_id):
    environ['services']['project'].delete_project(project_id)
    return json_response('200 OK', {'success': True, 'message': 'Project deleted'})

@route('GET', r'/api/pm2/sync')
def sync_handler(environ):
    report = environ['services']['sync'].reconcile()
    return json_response('200 OK', {'success': True, **report.to_dict()})

@route('POST', r'/api/pm2/auto-map')
def auto_map_handler(environ):
    sync_service = environ['services']['sync']
    report = sync_service.reconcile()
    mapped = sync_service.auto_map(report.unmapped_processes)
    return json_response('200 OK', {'success': True, 'mapped': [p.to_dict() for p in mapped], 'count': len(mapped)})

@route('GET', r'/api/pm2/status')
def pm2_status_handler(environ):
    processes = environ['services']['pm2'].get_status()
    return json_response('200 OK', {'success': True, 'processes': [p.to_dict() for p in processes]})

@route('GET', rf'/api/pm2/status/{NAME}')
def pm2_process_status_handler(environ, process_name):
    process = environ['services']['pm2'].get_process_status(process_name)
    if not process:
        raise ProcessNotFoundError(f"Process '{process_name}' not found")
    return json_response('200 OK', {'success': True, 'process': process.to_dict()})

@route('POST', rf'/api/pm2/restart/{NAME}')
def restart_handler(environ, process_name):
    result = environ['services']['pm2'].restart_process(process_name)
    return json_response('200 OK', result.to_dict())

@route('POST', rf'/api/pm2/stop/{NAME}')
def stop_handler(environ, process_name):
    result = environ['services']['pm2'].stop_process(process_name)
    return json_response('200 OK', result.to_dict())

@route('POST', rf'/api/pm2/start/{NAME}')
def start_handler(environ, process_name):
    data = get_request_data(environ)
    result = environ['services']['pm2'].start_process(
        process_name,
        cwd=data.get('cwd'),
        script=data.get('script') or 'npm',
        script_args=data.get('scriptArgs') or 'start',
    )
    return json_response('200 OK', result.to_dict())

@route('GET', rf'/api/logs/{NAME}')
def logs_handler(environ, process_name):
    lines = parse_log_lines(get_query_param(environ, 'lines'))
    result = environ['services']['pm2'].get_logs(process_name, lines)
    return json_response('200 OK', result)

@route('POST', rf'/api/build/{NAME}')
def build_handler(environ, project_name):
    result = environ['services']['deploy'].build(project_name)
    return json_response('200 OK', result.to_dict())

@route('POST', rf'/api/deploy/{NAME}')
def deploy_handler(environ, project_name):
    result = environ['services']['deploy'].deploy(project_name)
    return json_response('200 OK', result.to_dict())

@route('POST', rf'/api/deploy-script/{NAME}')
def deploy_script_handler(environ, project_name):
    result = environ['services']['deploy'].run_deploy_script(project_name)
    return json_response('200 OK', result.to_dict())

@route('GET', r'/api/system/database')
def database_status_handler(environ):
    connected = environ['database'].ping()
    return json_response('200 OK', {
        'success': True,
        'database': {
            'connected': connected,
            'message': 'Connected' if connected else 'Disconnected',
        },
    })

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """요청마다 스레드 하나. 원격 명령과 DB 접근 중에도 다른 요청을 처리합니다."""
    daemon_threads = True


def main():
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    with Database(settings.database_url) as database:
        initialize_db(database, settings.seed_file)
        application = create_app(settings, database)
        logger.info("SSH target: %s@%s:%s", settings.ssh_user, settings.ssh_host, settings.ssh_port)
        with make_server("", settings.port, application, server_class=ThreadingWSGIServer) as httpd:
            logger.info("Lightsail Manager API running on port %s", settings.port)
            httpd.serve_forever()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)
