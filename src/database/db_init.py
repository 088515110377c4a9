import json
import logging
import sys
from typing import Any, Dict, List, Optional

from src.config import Settings
from src.database.database import Database
from src.database.models import Project
from src.repositories.sqlalchemy import SqlalchemyProjectRepository
from src.services.steps import normalize_steps, steps_to_dicts
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def load_seed_file(seed_file: str) -> List[Dict[str, Any]]:
    """
    시드 JSON 파일(프로젝트 딕셔너리의 리스트)을 읽습니다.

    Raises:
        ValueError: 파일 내용이 프로젝트 목록 형식이 아닐 때.
    """
    with open(seed_file, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Seed file {seed_file} must contain a JSON list of projects.")
    return data


def seed_projects(repo: SqlalchemyProjectRepository, projects: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    프로젝트 목록을 DB에 넣습니다. 같은 이름의 프로젝트가 이미 있으면 건너뜁니다.

    Returns:
        {'added': 추가된 개수, 'skipped': 건너뛴 개수, 'total': 입력 개수}
    """
    existing_names = {p.name for p in repo.list_all()}
    added = skipped = 0

    for data in projects:
        name = data.get("name")
        if not name or not data.get("path"):
            raise ValueError(f"Seed project requires name and path: {data!r}")
        if name in existing_names:
            logger.info("Skipping %s (already exists)", name)
            skipped += 1
            continue

        repo.create(Project(
            name=name,
            path=data["path"],
            pm2_name=data.get("pm2Name") or name,
            description=data.get("description") or "",
            type=data.get("type") or "mern",
            build_steps=steps_to_dicts(normalize_steps(data.get("buildSteps"))),
            deploy_steps=steps_to_dicts(normalize_steps(data.get("deploySteps"))),
            git_url=data.get("gitUrl"),
        ))
        existing_names.add(name)
        logger.info("Added %s", name)
        added += 1

    return {"added": added, "skipped": skipped, "total": len(projects)}


def initialize_db(database: Database, seed_file: Optional[str] = None) -> Optional[Dict[str, int]]:
    """
    테이블을 생성하고, 시드 파일이 주어지면 프로젝트를 채워 넣습니다.

    Returns:
        시드를 수행했으면 seed_projects()의 요약, 아니면 None.
    """
    database.connect()
    if not seed_file:
        return None

    with database.session() as db:
        summary = seed_projects(SqlalchemyProjectRepository(db), load_seed_file(seed_file))
    logger.info("Seeding complete: added=%(added)s skipped=%(skipped)s total=%(total)s", summary)
    return summary


if __name__ == '__main__':
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    seed_path = sys.argv[1] if len(sys.argv) > 1 else settings.seed_file
    try:
        with Database(settings.database_url) as database:
            initialize_db(database, seed_path)
    except (OSError, ValueError) as e:
        logger.error("Error seeding projects: %s", e)
        sys.exit(1)
