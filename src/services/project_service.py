import logging
import posixpath
from typing import Any, Dict, List

from src.database import models
from src.repositories.interfaces import IProjectRepository
from src.services.pm2_service import Pm2Service
from src.services.steps import normalize_steps, steps_to_dicts
from src.services.exceptions import (
    ProjectNotFoundError,
    ProjectAlreadyExistsError,
    RepositoryCloneError,
)

logger = logging.getLogger(__name__)

# API 필드 이름(camelCase) -> 모델 속성 이름
FIELD_MAP = {
    "name": "name",
    "path": "path",
    "pm2Name": "pm2_name",
    "description": "description",
    "type": "type",
    "buildSteps": "build_steps",
    "deploySteps": "deploy_steps",
    "gitUrl": "git_url",
}


class ProjectService:
    """프로젝트 레코드의 생성, 조회, 수정, 삭제와 git clone을 통한 생성을 제공합니다."""

    def __init__(self, project_repo: IProjectRepository, pm2_service: Pm2Service):
        """
        ProjectService를 초기화합니다.

        Args:
            project_repo: 프로젝트 데이터에 접근하기 위한 리포지토리.
            pm2_service: clone 명령을 원격에서 실행하기 위한 PM2 서비스.
        """
        self.project_repo = project_repo
        self.pm2_service = pm2_service

    def list_projects(self) -> List[Dict[str, Any]]:
        """모든 프로젝트의 목록을 조회합니다."""
        return [p.to_dict() for p in self.project_repo.list_all()]

    def get_project(self, project_id: str) -> Dict[str, Any]:
        """
        ID로 특정 프로젝트를 조회합니다.

        Raises:
            ProjectNotFoundError: 해당 ID의 프로젝트를 찾을 수 없을 때.
        """
        return self._get_model(project_id).to_dict()

    def get_project_by_name(self, name: str) -> models.Project:
        """
        이름으로 프로젝트 모델을 조회합니다.

        Raises:
            ProjectNotFoundError: 해당 이름의 프로젝트를 찾을 수 없을 때.
        """
        project = self.project_repo.find_by_name(name)
        if not project:
            raise ProjectNotFoundError(f"Project '{name}' not found")
        return project

    def create_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        새로운 프로젝트를 생성합니다.

        Args:
            data: name, path는 필수. pm2Name(기본값 name), description, type(기본값 'mern'),
                  buildSteps, deploySteps, gitUrl은 선택.

        Returns:
            생성된 프로젝트 레코드.

        Raises:
            ValueError: name 또는 path가 없거나 단계 형식이 잘못되었을 때.
            ProjectAlreadyExistsError: 동일한 이름의 프로젝트가 이미 존재할 때.
        """
        name, path = data.get("name"), data.get("path")
        if not name or not path:
            raise ValueError("Project name and path are required")
        if not isinstance(name, str) or not isinstance(path, str):
            raise ValueError("Project name and path must be strings")
        self._ensure_name_available(name)

        project = models.Project(
            name=name,
            path=path,
            pm2_name=data.get("pm2Name") or name,
            description=data.get("description") or "",
            type=data.get("type") or "mern",
            build_steps=steps_to_dicts(normalize_steps(data.get("buildSteps"))),
            deploy_steps=steps_to_dicts(normalize_steps(data.get("deploySteps"))),
            git_url=data.get("gitUrl"),
        )
        created = self.project_repo.create(project)
        logger.info("Project '%s' created with id %s", created.name, created.id)
        return created.to_dict()

    def clone_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        원격 호스트에 git 저장소를 clone 한 뒤 프로젝트 레코드를 생성합니다.

        이름을 주지 않으면 targetPath의 마지막 경로 요소를 사용합니다.
        이름 중복은 clone 전에 검사하여 원격 디렉터리만 남는 상황을 피합니다.

        Returns:
            {'project': 생성된 레코드, 'cloneOutput': git clone 출력}

        Raises:
            ValueError: gitUrl 또는 targetPath가 없거나, 문자열이 아니거나, targetPath가 절대 경로가 아닐 때.
            ProjectAlreadyExistsError: 동일한 이름의 프로젝트가 이미 존재할 때.
            DirectoryExistsError: 대상 디렉터리가 이미 존재할 때.
            RepositoryCloneError: git clone이 실패했을 때.
        """
        git_url, target_path = data.get("gitUrl"), data.get("targetPath")
        if not git_url or not target_path:
            raise ValueError("gitUrl and targetPath are required")
        if not isinstance(git_url, str) or not isinstance(target_path, str):
            raise ValueError("gitUrl and targetPath must be strings")
        # 존재 여부 검사와 clone이 같은 디렉터리를 보도록 절대 경로만 허용합니다.
        if not posixpath.isabs(target_path) or target_path.rstrip("/") == "":
            raise ValueError("targetPath must be an absolute path")

        default_name = posixpath.basename(target_path.rstrip("/"))
        name = data.get("name") or default_name
        if not isinstance(name, str):
            raise ValueError("name must be a string")
        self._ensure_name_available(name)

        clone_result = self.pm2_service.clone_repository(git_url, target_path)
        if not clone_result.success:
            raise RepositoryCloneError(f"Failed to clone repository: {clone_result.error.strip()}")

        project = self.create_project({
            **data,
            "name": name,
            "path": target_path,
            "pm2Name": data.get("pm2Name") or name,
            "description": data.get("description") or f"Cloned from {git_url}",
            "type": data.get("type") or "other",
            "gitUrl": git_url,
        })
        return {"project": project, "cloneOutput": clone_result.output}

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        프로젝트의 일부 필드를 갱신합니다. 알 수 없는 필드는 무시합니다.

        Raises:
            ProjectNotFoundError: 해당 ID의 프로젝트를 찾을 수 없을 때.
            ProjectAlreadyExistsError: 다른 프로젝트가 이미 사용하는 이름으로 바꾸려 할 때.
            ValueError: 단계 형식이 잘못되었거나 name/path를 빈 값으로 바꾸려 할 때.
        """
        project = self._get_model(project_id)

        changes = {}
        for api_field, attr in FIELD_MAP.items():
            if api_field in updates:
                changes[attr] = updates[api_field]

        for required in ("name", "path", "pm2_name"):
            if required in changes and not changes[required]:
                raise ValueError(f"'{required}' cannot be empty")
        for steps_field in ("build_steps", "deploy_steps"):
            if steps_field in changes:
                changes[steps_field] = steps_to_dicts(normalize_steps(changes[steps_field]))

        new_name = changes.get("name")
        if new_name and new_name != project.name:
            self._ensure_name_available(new_name)

        return self.project_repo.update(project, changes).to_dict()

    def delete_project(self, project_id: str) -> bool:
        """
        프로젝트 레코드를 삭제합니다. 원격 디렉터리와 PM2 프로세스는 건드리지 않습니다.

        Raises:
            ProjectNotFoundError: 해당 ID의 프로젝트를 찾을 수 없을 때.
        """
        project = self._get_model(project_id)
        self.project_repo.delete(project)
        logger.info("Project '%s' (id %s) deleted", project.name, project_id)
        return True

    def _get_model(self, project_id: str) -> models.Project:
        project = self.project_repo.find_by_id(project_id)
        if not project:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        return project

    def _ensure_name_available(self, name: str):
        if self.project_repo.find_by_name(name):
            raise ProjectAlreadyExistsError("Project with this name already exists")
