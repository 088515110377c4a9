# tests/utils/test_command_builder.py
import pytest

from src.utils import command_builder as cmd
from src.utils.command_builder import ProjectLayout


def test_pm2_prefix_exports_home():
    assert cmd.pm2("jlist", "/tmp/.pm2") == "export PM2_HOME=/tmp/.pm2 && npx pm2 jlist"


@pytest.mark.parametrize("output, expected", [
    ("SPLIT\n", ProjectLayout.SPLIT),
    ("FRAMEWORK", ProjectLayout.FRAMEWORK),
    ("SINGLE\n", ProjectLayout.SINGLE),
    ("bash: cd: /nope: No such file or directory", ProjectLayout.SINGLE),
    ("", ProjectLayout.SINGLE),
])
def test_layout_from_probe_output(output, expected):
    assert ProjectLayout.from_probe_output(output) is expected


def test_build_command_per_layout():
    """
    구조별 빌드 명령을 검증합니다.
    """
    # 1. 준비 (Arrange)
    path = "/home/bitnami/app"

    # 2. 실행 (Act)
    split = cmd.build_command(path, ProjectLayout.SPLIT)
    framework = cmd.build_command(path, ProjectLayout.FRAMEWORK)
    single = cmd.build_command(path, ProjectLayout.SINGLE)

    # 3. 단언 (Assert)
    assert split == (
        "cd /home/bitnami/app && git pull && cd frontend && npm install && "
        "cd ../backend && npm install && npm run build-frontend"
    )
    assert framework == "cd /home/bitnami/app && git pull && npm install && npm run build"
    assert single == 'cd /home/bitnami/app && git pull && npm install && (npm run build || echo "No build script")'


def test_restart_or_fail_and_restart_or_start_differ():
    fail = cmd.restart_or_fail("api", "/tmp/.pm2")
    start = cmd.restart_or_start("api", "/tmp/.pm2")

    assert "exit 1" in fail and "pm2 start" not in fail
    assert "npx pm2 start npm --name api -- start" in start and "exit 1" not in start


def test_paths_and_names_are_quoted():
    assert cmd.layout_probe("/srv/my app").startswith("cd '/srv/my app' && ")
    assert cmd.logs_command("a$(id)", 10, "/tmp/.pm2").endswith("npx pm2 logs 'a$(id)' --lines 10 --nostream --raw")


def test_clone_command_splits_target_path():
    assert cmd.clone_command("git@github.com:acme/app.git", "/home/bitnami/v0_demo/app/") == (
        "cd /home/bitnami/v0_demo && git clone git@github.com:acme/app.git app"
    )


def test_directory_exists_probe():
    assert cmd.directory_exists_probe("/srv/app") == 'if [ -d /srv/app ]; then echo "EXISTS"; else echo "NOT_EXISTS"; fi'
