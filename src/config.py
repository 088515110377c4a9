# src/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# 상대 경로(키 파일, 시드 파일)는 프로젝트 루트를 기준으로 해석합니다.
PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except ValueError:
        return default


def _str_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def resolve_path(path: Optional[str]) -> Optional[str]:
    """절대 경로는 그대로, 상대 경로는 PROJECT_ROOT 기준 절대 경로로 변환합니다."""
    if not path:
        return None
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str(PROJECT_ROOT / candidate)


@dataclass(frozen=True)
class Settings:
    """
    환경 변수에서 한 번만 읽어 들이는 애플리케이션 설정입니다.

    SSH 접속 정보가 비어 있어도 생성은 실패하지 않습니다.
    (원격 명령 실행 시점에 ConfigurationError로 보고됩니다.)
    """
    ssh_host: Optional[str] = None
    ssh_port: int = 22
    ssh_user: Optional[str] = None
    ssh_key_path: Optional[str] = None
    pm2_home: str = "/tmp/.pm2"
    default_project_root: str = "/home/bitnami"
    database_url: str = "sqlite:///lightsail_manager.db"
    port: int = 3500
    log_level: str = "INFO"
    seed_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            ssh_host=_str_env("LIGHTSAIL_HOST"),
            ssh_port=_int_env("LIGHTSAIL_PORT", 22),
            ssh_user=_str_env("LIGHTSAIL_USER"),
            ssh_key_path=resolve_path(_str_env("LIGHTSAIL_KEY_PATH")),
            pm2_home=_str_env("PM2_HOME", "/tmp/.pm2"),
            default_project_root=_str_env("DEFAULT_PROJECT_ROOT", "/home/bitnami"),
            database_url=_str_env("DATABASE_URL", "sqlite:///lightsail_manager.db"),
            port=_int_env("PORT", 3500),
            log_level=_str_env("LOG_LEVEL", "INFO").upper(),
            seed_file=resolve_path(_str_env("SEED_FILE")),
        )
