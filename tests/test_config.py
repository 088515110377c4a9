# tests/test_config.py
from src.config import Settings, PROJECT_ROOT, resolve_path

ENV_NAMES = [
    "LIGHTSAIL_HOST", "LIGHTSAIL_PORT", "LIGHTSAIL_USER", "LIGHTSAIL_KEY_PATH", "PM2_HOME",
    "DEFAULT_PROJECT_ROOT", "DATABASE_URL", "PORT", "LOG_LEVEL", "SEED_FILE",
]


def test_defaults_when_environment_is_empty(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.ssh_host is None
    assert settings.ssh_port == 22
    assert settings.pm2_home == "/tmp/.pm2"
    assert settings.port == 3500
    assert settings.database_url == "sqlite:///lightsail_manager.db"


def test_values_are_read_from_environment(monkeypatch):
    """환경 변수 값이 설정에 반영되고, 잘못된 숫자는 기본값으로 대체되는지 테스트합니다."""
    monkeypatch.setenv("LIGHTSAIL_HOST", " 3.39.10.20 ")
    monkeypatch.setenv("LIGHTSAIL_USER", "bitnami")
    monkeypatch.setenv("LIGHTSAIL_KEY_PATH", "keys/lightsail.pem")
    monkeypatch.setenv("LIGHTSAIL_PORT", "not-a-number")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.ssh_host == "3.39.10.20"
    assert settings.ssh_user == "bitnami"
    assert settings.ssh_key_path == str(PROJECT_ROOT / "keys/lightsail.pem")
    assert settings.ssh_port == 22
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"


def test_resolve_path_keeps_absolute_paths():
    assert resolve_path("/etc/ssh/key.pem") == "/etc/ssh/key.pem"
    assert resolve_path("") is None
