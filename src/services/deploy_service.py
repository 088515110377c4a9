import logging

from src.services.pm2_service import Pm2Service, ActionResult
from src.services.project_service import ProjectService

logger = logging.getLogger(__name__)


class DeployService:
    """이름으로 찾은 프로젝트에 대해 빌드, 배포, deploy.sh 실행을 수행합니다."""

    def __init__(self, project_service: ProjectService, pm2_service: Pm2Service):
        self.project_service = project_service
        self.pm2_service = pm2_service

    def build(self, project_name: str) -> ActionResult:
        """
        프로젝트를 빌드합니다. 사용자 정의 빌드 단계가 있으면 그것을, 없으면 구조별 기본 빌드를 사용합니다.

        사용자 정의 단계 뒤에는 PM2 재시작(없으면 시작)이 이어집니다.

        Raises:
            ProjectNotFoundError: 해당 이름의 프로젝트를 찾을 수 없을 때.
        """
        project = self.project_service.get_project_by_name(project_name)
        logger.info("Build requested for '%s'", project.name)
        if project.build_steps:
            return self.pm2_service.execute_custom_steps(project.path, project.build_steps, project.pm2_name)
        return self.pm2_service.build_project(project.path)

    def deploy(self, project_name: str) -> ActionResult:
        """
        프로젝트를 배포합니다. 사용자 정의 배포 단계가 있으면 그것을, 없으면 기본 배포를 사용합니다.

        Raises:
            ProjectNotFoundError: 해당 이름의 프로젝트를 찾을 수 없을 때.
        """
        project = self.project_service.get_project_by_name(project_name)
        logger.info("Deploy requested for '%s'", project.name)
        if project.deploy_steps:
            return self.pm2_service.execute_custom_steps(project.path, project.deploy_steps, project.pm2_name)
        return self.pm2_service.deploy_project(project.path, project.pm2_name)

    def run_deploy_script(self, project_name: str) -> ActionResult:
        project = self.project_service.get_project_by_name(project_name)
        return self.pm2_service.run_deploy_script(project.path)
