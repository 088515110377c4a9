# src/utils/command_builder.py
import enum
import posixpath
import shlex
from typing import Iterable


class ProjectLayout(enum.Enum):
    """원격 프로젝트 디렉터리 구조. layout_probe()가 출력하는 문자열과 값이 같습니다."""
    SPLIT = "SPLIT"          # frontend/ 와 backend/ 를 모두 가진 MERN 구조
    FRAMEWORK = "FRAMEWORK"  # next.config.* 가 있는 Next.js 구조
    SINGLE = "SINGLE"

    @classmethod
    def from_probe_output(cls, output: str) -> "ProjectLayout":
        try:
            return cls(output.strip())
        except ValueError:
            return cls.SINGLE


def q(value) -> str:
    return shlex.quote(str(value))


def join_steps(steps: Iterable[str]) -> str:
    """여러 단계를 하나의 명령 줄로 연결합니다. 앞 단계가 실패하면 뒤 단계는 실행되지 않습니다."""
    return " && ".join(steps)


def pm2(args: str, pm2_home: str) -> str:
    return f"export PM2_HOME={q(pm2_home)} && npx pm2 {args}"


def pm2_jlist(pm2_home: str) -> str:
    return pm2("jlist", pm2_home)


def _process_exists(name: str) -> str:
    return f"npx pm2 describe {q(name)} > /dev/null 2>&1"


def restart_or_fail(name: str, pm2_home: str) -> str:
    """등록된 프로세스만 재시작합니다. 없으면 시작하지 않고 exit 1로 실패합니다."""
    not_found = q(f"Process {name} not found, use start command instead")
    return (
        f"export PM2_HOME={q(pm2_home)} && "
        f"if {_process_exists(name)}; then npx pm2 restart {q(name)}; "
        f"else echo {not_found}; exit 1; fi"
    )


def restart_or_start(name: str, pm2_home: str) -> str:
    """등록된 프로세스는 재시작하고, 없으면 'npm start'로 새로 등록합니다."""
    return (
        f"export PM2_HOME={q(pm2_home)} && "
        f"if {_process_exists(name)}; then npx pm2 restart {q(name)}; "
        f"else npx pm2 start npm --name {q(name)} -- start; fi"
    )


def start_command(name: str, pm2_home: str, cwd: str = None,
                  script: str = "npm", script_args: str = "start") -> str:
    if cwd:
        return join_steps([
            f"export PM2_HOME={q(pm2_home)}",
            f"cd {q(cwd)}",
            f"npx pm2 start {q(script)} --name {q(name)} -- {shlex.join(shlex.split(script_args))}",
        ])
    return pm2(f"start {q(name)}", pm2_home)


def logs_command(name: str, lines: int, pm2_home: str) -> str:
    return pm2(f"logs {q(name)} --lines {int(lines)} --nostream --raw", pm2_home)


def layout_probe(path: str) -> str:
    return (
        f"cd {q(path)} && "
        f'if [ -d "frontend" ] && [ -d "backend" ]; then echo "{ProjectLayout.SPLIT.value}"; '
        f'elif [ -f "next.config.mjs" ] || [ -f "next.config.js" ]; then echo "{ProjectLayout.FRAMEWORK.value}"; '
        f'else echo "{ProjectLayout.SINGLE.value}"; fi'
    )


def build_command(path: str, layout: ProjectLayout) -> str:
    steps = [f"cd {q(path)}", "git pull"]
    if layout is ProjectLayout.SPLIT:
        steps += ["cd frontend", "npm install", "cd ../backend", "npm install", "npm run build-frontend"]
    elif layout is ProjectLayout.FRAMEWORK:
        steps += ["npm install", "npm run build"]
    else:
        steps += ["npm install", '(npm run build || echo "No build script")']
    return join_steps(steps)


def deploy_command(path: str, name: str, pm2_home: str) -> str:
    return join_steps([
        f"cd {q(path)}",
        "git pull",
        "npm install",
        '(npm run build || npm run build-frontend || echo "No build needed")',
        restart_or_start(name, pm2_home),
    ])


def deploy_script_command(path: str) -> str:
    return f'cd {q(path)} && if [ -f "deploy.sh" ]; then ./deploy.sh; else echo "No deploy.sh found"; fi'


def custom_steps_command(path: str, steps: Iterable[str], name: str = None, pm2_home: str = None) -> str:
    parts = [f"cd {q(path)}", *steps]
    if name:
        parts.append(restart_or_start(name, pm2_home))
    return join_steps(parts)


def directory_exists_probe(path: str) -> str:
    return f'if [ -d {q(path)} ]; then echo "EXISTS"; else echo "NOT_EXISTS"; fi'


def clone_command(git_url: str, target_path: str) -> str:
    parent_dir, dir_name = posixpath.split(target_path.rstrip("/"))
    return f"cd {q(parent_dir or '/')} && git clone {q(git_url)} {q(dir_name)}"
