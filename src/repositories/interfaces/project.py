from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from src.database import models

class IProjectRepository(ABC):
    @abstractmethod
    def create(self, project_model: models.Project) -> models.Project:
        """
        새로운 프로젝트를 데이터베이스에 생성합니다.

        id가 비어 있으면 next_id()로 할당하고, created_at/updated_at을 현재 시각으로 설정합니다.
        """
        pass

    @abstractmethod
    def find_by_id(self, project_id: str) -> Optional[models.Project]:
        """고유 ID로 특정 프로젝트를 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Project]:
        """이름으로 특정 프로젝트를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Project]:
        """모든 프로젝트의 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, project: models.Project, updates: Dict[str, Any]) -> models.Project:
        """
        프로젝트의 일부 필드를 갱신하고 updated_at을 현재 시각으로 바꿉니다.

        Args:
            project: 갱신할 프로젝트 모델.
            updates: 모델 속성 이름(snake_case)을 키로 하는 변경 사항.
                     모델에 없는 키와 id, created_at은 무시됩니다.
        """
        pass

    @abstractmethod
    def delete(self, project: models.Project) -> bool:
        """특정 프로젝트를 데이터베이스에서 삭제합니다."""
        pass

    @abstractmethod
    def next_id(self) -> str:
        """현재 가장 큰 숫자 id + 1을 문자열로 반환합니다. (프로젝트가 없으면 '1')"""
        pass
