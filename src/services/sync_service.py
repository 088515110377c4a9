import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Dict, List

from src.database import models
from src.repositories.interfaces import IProjectRepository
from src.services.pm2_service import Pm2Service, ProcessSnapshot

logger = logging.getLogger(__name__)

AUTO_MAP_DESCRIPTION = "Auto-detected from PM2"
AUTO_MAP_TYPE = "mern"


@dataclass
class SyncReport:
    """PM2 프로세스 목록과 DB 프로젝트 목록을 이름으로 비교한 결과."""
    processes: List[ProcessSnapshot]
    projects: List[models.Project]
    unmapped_processes: List[ProcessSnapshot]
    mapped_processes: List[ProcessSnapshot]
    not_running_projects: List[models.Project]
    running_projects: List[models.Project]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pm2Processes": [p.to_dict() for p in self.processes],
            "dbProjects": [p.to_dict() for p in self.projects],
            "unmappedProcesses": [p.to_dict() for p in self.unmapped_processes],
            "notRunningProjects": [p.to_dict() for p in self.not_running_projects],
            "totalPM2": len(self.processes),
            "totalDB": len(self.projects),
            "unmappedCount": len(self.unmapped_processes),
            "mappedCount": len(self.mapped_processes),
            "notRunningCount": len(self.not_running_projects),
        }


class SyncService:
    def __init__(self, pm2_service: Pm2Service, project_repo: IProjectRepository,
                 default_project_root: str = "/home/bitnami"):
        self.pm2_service = pm2_service
        self.project_repo = project_repo
        self.default_project_root = default_project_root

    def reconcile(self) -> SyncReport:
        """
        PM2와 DB의 상태를 비교하여 서로 대응되지 않는 항목을 찾아냅니다.

        두 목록은 독립적으로 조회되므로 서로 트랜잭션 일관성이 없는 스냅샷입니다.
        아무것도 변경하지 않으므로 입력이 같으면 결과도 같습니다.

        Returns:
            DB에 없는 PM2 프로세스(unmapped)와 PM2에서 실행 중이지 않은 프로젝트(not running)를
            포함한 SyncReport.
        """
        processes = self.pm2_service.get_status()
        projects = self.project_repo.list_all()

        project_names = {project.name for project in projects}
        unmapped = [p for p in processes if p.name not in project_names]
        mapped = [p for p in processes if p.name in project_names]

        process_names = {process.name for process in processes}
        not_running = [p for p in projects if p.name not in process_names]
        running = [p for p in projects if p.name in process_names]

        return SyncReport(processes, projects, unmapped, mapped, not_running, running)

    def auto_map(self, unmapped_processes: List[ProcessSnapshot]) -> List[models.Project]:
        """
        DB에 없는 PM2 프로세스마다(이름 기준 한 번씩) 최소한의 프로젝트 레코드를 만듭니다.

        순서대로 하나씩 생성하며, 중간에 실패하면 예외를 그대로 전달합니다.
        이미 생성된 레코드는 되돌리지 않습니다.

        Returns:
            생성된 프로젝트 모델의 리스트.
        """
        created, seen = [], set()
        for process in unmapped_processes:
            # cluster 모드에서는 같은 이름의 인스턴스가 여러 개 보고됩니다.
            if process.name in seen:
                continue
            seen.add(process.name)
            path = process.cwd or posixpath.join(self.default_project_root, process.name)
            project = models.Project(
                name=process.name,
                path=path,
                pm2_name=process.name,
                description=AUTO_MAP_DESCRIPTION,
                type=AUTO_MAP_TYPE,
                build_steps=[],
                deploy_steps=[],
            )
            created.append(self.project_repo.create(project))
            logger.info("Auto-mapped PM2 process '%s' -> %s", process.name, path)
        return created
