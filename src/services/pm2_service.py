import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from src.services.ssh_executor import RemoteCommandExecutor, CommandResult
from src.services.steps import normalize_steps
from src.services.exceptions import (
    ParseError,
    SupervisorCommandError,
    DirectoryExistsError,
    reraise_with_operation,
)
from src.utils import command_builder as cmd
from src.utils.command_builder import ProjectLayout

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 30.0
BUILD_TIMEOUT = 180.0
CLONE_TIMEOUT = 120.0

PROCESS_STATUSES = {"online", "stopping", "stopped", "errored", "launching"}


@dataclass
class ProcessSnapshot:
    """'pm2 jlist' 항목 하나에서 추출한 프로세스 상태. 저장하지 않고 매번 새로 조회합니다."""
    name: str
    pm_id: Optional[int] = None
    pid: Optional[int] = None
    status: str = "unknown"
    cwd: Optional[str] = None
    restarts: int = 0
    uptime: Optional[int] = None
    memory: int = 0
    cpu: float = 0.0

    @classmethod
    def from_pm2(cls, entry: Dict[str, Any]) -> "ProcessSnapshot":
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ParseError(f"Invalid PM2 process entry: {entry!r}")
        env = entry.get("pm2_env") or {}
        monit = entry.get("monit") or {}
        status = env.get("status", "unknown")
        return cls(
            name=str(entry["name"]),
            pm_id=entry.get("pm_id"),
            pid=entry.get("pid"),
            status=status if status in PROCESS_STATUSES else "unknown",
            cwd=env.get("pm_cwd"),
            restarts=env.get("restart_time", 0) or 0,
            uptime=env.get("pm_uptime"),
            memory=monit.get("memory", 0) or 0,
            cpu=monit.get("cpu", 0) or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pmId": self.pm_id,
            "pid": self.pid,
            "status": self.status,
            "cwd": self.cwd,
            "restarts": self.restarts,
            "uptime": self.uptime,
            "memory": self.memory,
            "cpu": self.cpu,
        }


@dataclass
class ActionResult:
    """재시작, 빌드, 배포 등 명령형 작업의 결과."""
    success: bool
    output: str
    error: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_command(cls, result: CommandResult, **extra) -> "ActionResult":
        return cls(success=result.success, output=result.stdout, error=result.stderr, extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "output": self.output, "error": self.error, **self.extra}


def parse_process_list(output: str) -> List[ProcessSnapshot]:
    """
    'pm2 jlist' 출력을 ProcessSnapshot 목록으로 변환합니다.

    Raises:
        ParseError: 출력이 JSON 목록이 아닐 때.
    """
    if not output.strip():
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        logger.error("PM2 jlist parse error: %s", e)
        raise ParseError(f"Failed to parse PM2 output: {e}") from e
    if not isinstance(data, list):
        raise ParseError("Failed to parse PM2 output: expected a JSON list.")
    return [ProcessSnapshot.from_pm2(entry) for entry in data]


class Pm2Service:
    """SSH를 통해 원격 호스트의 PM2 프로세스를 조회하고 제어합니다."""

    def __init__(self, executor: RemoteCommandExecutor, pm2_home: str = "/tmp/.pm2"):
        """
        Pm2Service를 초기화합니다.

        Args:
            executor: 원격 명령을 실행할 실행기.
            pm2_home: 모든 pm2 명령 앞에 export 할 PM2_HOME 경로.
        """
        self.executor = executor
        self.pm2_home = pm2_home

    def get_status(self) -> List[ProcessSnapshot]:
        """
        PM2에 등록된 모든 프로세스의 상태를 조회합니다.

        Raises:
            SupervisorCommandError: jlist 명령이 실패했을 때.
            ParseError: jlist 출력을 해석할 수 없을 때.
        """
        try:
            result = self.executor.execute(cmd.pm2_jlist(self.pm2_home), QUERY_TIMEOUT)
            if not result.success:
                raise SupervisorCommandError(result.stderr.strip() or "Failed to get PM2 status")
            return parse_process_list(result.stdout)
        except Exception as e:
            reraise_with_operation("PM2 status", e)

    def get_process_status(self, process_name: str) -> Optional[ProcessSnapshot]:
        """이름으로 프로세스 하나를 찾습니다. 없으면 None을 반환합니다 (오류 아님)."""
        try:
            processes = self.get_status()
        except Exception as e:
            reraise_with_operation("Process status", e)
        return next((p for p in processes if p.name == process_name), None)

    def restart_process(self, process_name: str) -> ActionResult:
        """
        등록된 프로세스를 재시작합니다.

        프로세스가 없으면 새로 시작하지 않고 success=False를 반환합니다.
        설정이 어긋난 상태가 가려지지 않도록 하기 위함이며, 배포(deploy_project)와 동작이 다릅니다.
        """
        return self._run("Restart", cmd.restart_or_fail(process_name, self.pm2_home))

    def stop_process(self, process_name: str) -> ActionResult:
        return self._run("Stop", cmd.pm2(f"stop {cmd.q(process_name)}", self.pm2_home))

    def start_process(self, process_name: str, cwd: Optional[str] = None,
                      script: str = "npm", script_args: str = "start") -> ActionResult:
        """
        프로세스를 시작합니다. cwd가 주어지면 해당 디렉터리에서 새 프로세스로 등록합니다.
        """
        command = cmd.start_command(process_name, self.pm2_home, cwd, script, script_args)
        return self._run("Start", command)

    def get_logs(self, process_name: str, lines: int = 100) -> Dict[str, Any]:
        """
        프로세스의 마지막 N줄 로그를 가져옵니다 (스트리밍 아님).

        Raises:
            ValueError: lines가 양의 정수가 아닐 때.
        """
        if isinstance(lines, bool) or not isinstance(lines, int) or lines <= 0:
            raise ValueError("lines must be a positive integer.")
        try:
            result = self.executor.execute(cmd.logs_command(process_name, lines, self.pm2_home), QUERY_TIMEOUT)
        except Exception as e:
            reraise_with_operation("Get logs", e)
        return {"success": result.success, "logs": result.stdout, "error": result.stderr}

    def detect_layout(self, project_path: str) -> ProjectLayout:
        try:
            result = self.executor.execute(cmd.layout_probe(project_path), QUERY_TIMEOUT)
        except Exception as e:
            reraise_with_operation("Layout probe", e)
        return ProjectLayout.from_probe_output(result.stdout)

    def build_project(self, project_path: str) -> ActionResult:
        """
        프로젝트 구조를 먼저 확인한 뒤, 구조에 맞는 빌드 명령을 실행합니다.

        구조 확인과 빌드는 각각 별도의 원격 명령입니다 (두 번의 왕복).

        Returns:
            빌드 결과. extra['layout']에 감지된 구조('SPLIT', 'FRAMEWORK', 'SINGLE')가 담깁니다.
        """
        try:
            layout = self.detect_layout(project_path)
            logger.info("Building %s (layout=%s)", project_path, layout.value)
            result = self.executor.execute(cmd.build_command(project_path, layout), BUILD_TIMEOUT)
        except Exception as e:
            reraise_with_operation("Build", e)
        return ActionResult.from_command(result, layout=layout.value)

    def deploy_project(self, project_path: str, process_name: str) -> ActionResult:
        """
        git pull, 의존성 설치, 빌드 후 프로세스를 재시작합니다.

        restart_process와 달리 프로세스가 등록되어 있지 않으면 새로 시작합니다.
        """
        return self._run("Deploy", cmd.deploy_command(project_path, process_name, self.pm2_home), BUILD_TIMEOUT)

    def run_deploy_script(self, project_path: str) -> ActionResult:
        return self._run("Deploy script", cmd.deploy_script_command(project_path), BUILD_TIMEOUT)

    def execute_custom_steps(self, project_path: str, steps: Iterable[Any],
                             process_name: Optional[str] = None) -> ActionResult:
        """
        사용자 정의 단계를 '&&'로 연결하여 하나의 명령으로 실행합니다.

        Args:
            project_path: 단계를 실행할 원격 디렉터리.
            steps: 문자열 또는 {"type": "command", "command": ...} 형태의 단계 목록.
            process_name: 주어지면 마지막에 재시작(없으면 시작) 단계를 덧붙입니다.

        Raises:
            ValueError: 단계가 비어 있거나 형식이 잘못되었을 때.
        """
        commands = [step.command for step in normalize_steps(steps)]
        if not commands:
            raise ValueError("At least one step is required.")
        command = cmd.custom_steps_command(project_path, commands, process_name, self.pm2_home)
        return self._run("Custom steps", command, BUILD_TIMEOUT)

    def clone_repository(self, git_url: str, target_path: str) -> ActionResult:
        """
        대상 디렉터리가 없을 때만 git 저장소를 clone 합니다.

        Raises:
            DirectoryExistsError: 대상 디렉터리가 이미 존재할 때.
        """
        try:
            check = self.executor.execute(cmd.directory_exists_probe(target_path), QUERY_TIMEOUT)
            if check.stdout.strip() == "EXISTS":
                raise DirectoryExistsError(f"Directory {target_path} already exists")
            result = self.executor.execute(cmd.clone_command(git_url, target_path), CLONE_TIMEOUT)
        except Exception as e:
            reraise_with_operation("Clone", e)
        return ActionResult.from_command(result, path=target_path)

    def _run(self, operation: str, command: str, timeout: float = QUERY_TIMEOUT) -> ActionResult:
        try:
            result = self.executor.execute(command, timeout)
        except Exception as e:
            reraise_with_operation(operation, e)
        if not result.success:
            logger.warning("%s exited with code %s", operation, result.exit_code)
        return ActionResult.from_command(result)
