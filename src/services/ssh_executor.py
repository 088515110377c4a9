import logging
import socket
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import paramiko

from src.config import Settings
from src.services.exceptions import ConfigurationError, TransportError, RemoteTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
CONNECT_TIMEOUT = 10.0
BUFFER_SIZE = 4096
POLL_INTERVAL = 0.05

# 로드를 시도할 개인 키 형식 (순서대로)
KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


@dataclass
class CommandResult:
    """원격 명령 한 번의 실행 결과. exit code가 0이 아니어도 예외가 아닙니다."""
    success: bool
    exit_code: int
    stdout: str
    stderr: str
    signal: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "exitCode": self.exit_code,
            "signal": self.signal,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


def load_private_key(key_path: str) -> paramiko.PKey:
    """
    파일에서 SSH 개인 키를 읽어옵니다. RSA, ECDSA, Ed25519 형식을 차례로 시도합니다.

    Raises:
        FileNotFoundError: 키 파일이 없을 때.
        paramiko.SSHException: 지원하는 형식으로 읽을 수 없을 때.
    """
    last_error = None
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key_file(key_path)
        except paramiko.SSHException as e:
            last_error = e
    raise paramiko.SSHException(f"Unsupported or invalid private key '{key_path}': {last_error}")


class RemoteCommandExecutor:
    """
    고정된 원격 호스트에서 셸 명령 한 줄을 실행합니다.

    호출마다 SSH 연결을 새로 열고 닫으며, 호출 간에 공유하는 가변 상태가 없습니다.
    설정(호스트, 포트, 사용자, 키)은 생성 시점에 한 번만 결정됩니다.
    """

    def __init__(self, host: Optional[str], port: int, username: Optional[str],
                 private_key: Optional[paramiko.PKey], client_factory=paramiko.SSHClient):
        self.host = host
        self.port = port
        self.username = username
        self.private_key = private_key
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls, settings: Settings, client_factory=paramiko.SSHClient) -> "RemoteCommandExecutor":
        """
        설정에서 실행기를 만듭니다. 키를 읽지 못해도 예외를 발생시키지 않습니다.

        서버 기동이 SSH 설정 문제로 중단되지 않도록, 오류는 로그로만 남기고
        실제 실행 시점에 ConfigurationError로 보고합니다.
        """
        private_key = None
        if not settings.ssh_key_path:
            logger.error("LIGHTSAIL_KEY_PATH is not set; remote commands are disabled.")
        else:
            try:
                private_key = load_private_key(settings.ssh_key_path)
                logger.info("SSH key loaded from %s", settings.ssh_key_path)
            except (OSError, paramiko.SSHException) as e:
                logger.error("Failed to read SSH key at %s: %s", settings.ssh_key_path, e)

        return cls(settings.ssh_host, settings.ssh_port, settings.ssh_user, private_key, client_factory)

    def check_configuration(self):
        if self.private_key is None:
            raise ConfigurationError("SSH key not loaded. Check LIGHTSAIL_KEY_PATH.")
        if not self.host or not self.username:
            raise ConfigurationError("SSH configuration incomplete. Check LIGHTSAIL_HOST and LIGHTSAIL_USER.")

    def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        """
        원격 셸에서 명령을 실행하고 결과를 반환합니다.

        stdout과 stderr는 각각 순서가 보장되지만, 두 스트림 사이의 순서는 보장되지 않습니다.

        Args:
            command: 실행할 셸 명령 한 줄.
            timeout: 호출 시작부터 명령 종료까지 허용할 시간(초).

        Returns:
            종료 코드와 출력이 담긴 CommandResult. 종료 코드가 0이 아니면 success=False.

        Raises:
            ConfigurationError: 키, 호스트, 사용자 설정이 없을 때.
            TransportError: 연결 또는 인증에 실패했을 때.
            RemoteTimeoutError: 제한 시간 내에 명령이 끝나지 않았을 때. 부분 출력은 버립니다.
        """
        self.check_configuration()
        deadline = time.monotonic() + timeout

        logger.debug("SSH %s@%s:%s $ %s", self.username, self.host, self.port, command[:200])
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                pkey=self.private_key,
                timeout=min(CONNECT_TIMEOUT, timeout),
                # 배너 대기와 인증도 호출 시작 시점의 제한 시간에 포함됩니다.
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            _, stdout, _ = client.exec_command(command)
            return self._collect(stdout.channel, deadline, timeout)
        except paramiko.AuthenticationException as e:
            if time.monotonic() >= deadline:
                raise self._timeout_error(timeout) from e
            raise TransportError(f"SSH authentication failed for {self.username}@{self.host}: {e}") from e
        except (paramiko.SSHException, socket.error) as e:
            if time.monotonic() >= deadline:
                raise self._timeout_error(timeout) from e
            raise TransportError(f"SSH connection to {self.host}:{self.port} failed: {e}") from e
        finally:
            client.close()

    def _timeout_error(self, timeout: float) -> RemoteTimeoutError:
        logger.warning("Remote command timed out after %.1fs on %s", timeout, self.host)
        return RemoteTimeoutError(f"Command execution timeout after {timeout:g}s")

    def _collect(self, channel, deadline: float, timeout: float) -> CommandResult:
        out_chunks, err_chunks = [], []
        while True:
            received = False
            if channel.recv_ready():
                out_chunks.append(channel.recv(BUFFER_SIZE))
                received = True
            if channel.recv_stderr_ready():
                err_chunks.append(channel.recv_stderr(BUFFER_SIZE))
                received = True

            if channel.exit_status_ready() and not channel.recv_ready() and not channel.recv_stderr_ready():
                break

            if time.monotonic() >= deadline:
                raise self._timeout_error(timeout)

            if not received:
                time.sleep(POLL_INTERVAL)

        exit_code = channel.recv_exit_status()
        return CommandResult(
            success=exit_code == 0,
            exit_code=exit_code,
            stdout=b"".join(out_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(err_chunks).decode("utf-8", errors="replace"),
        )
