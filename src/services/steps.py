from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class CommandStep:
    """빌드/배포 단계 하나. 현재 유일한 종류는 셸 명령('command')입니다."""
    command: str
    kind: str = "command"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.kind, "command": self.command}


def normalize_step(raw: Any) -> CommandStep:
    """
    외부 입력(문자열 또는 {"type": "command", "command": ...})을 CommandStep으로 변환합니다.

    Raises:
        ValueError: 지원하지 않는 형식이거나 명령이 비어 있을 때.
    """
    if isinstance(raw, CommandStep):
        return raw
    if isinstance(raw, str):
        command = raw
    elif isinstance(raw, dict):
        if raw.get("type", "command") != "command":
            raise ValueError(f"Unsupported step type: {raw.get('type')!r}")
        command = raw.get("command")
    else:
        raise ValueError(f"Invalid step: {raw!r}")

    if not isinstance(command, str) or not command.strip():
        raise ValueError("Step command must be a non-empty string.")
    return CommandStep(command=command.strip())


def normalize_steps(raw_steps: Optional[Iterable[Any]]) -> List[CommandStep]:
    if raw_steps is None:
        return []
    if isinstance(raw_steps, (str, dict)):
        raise ValueError("Steps must be a list.")
    return [normalize_step(step) for step in raw_steps]


def steps_to_dicts(steps: Iterable[CommandStep]) -> List[Dict[str, str]]:
    return [step.to_dict() for step in steps]
