from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IProjectRepository

UPDATABLE_FIELDS = {
    "name", "path", "pm2_name", "description", "type",
    "build_steps", "deploy_steps", "git_url",
}

class SqlalchemyProjectRepository(IProjectRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, project_model: models.Project) -> models.Project:
        if not project_model.id:
            project_model.id = self.next_id()
        now = datetime.now()
        project_model.created_at = now
        project_model.updated_at = now
        self.db.add(project_model)
        self.db.commit()
        self.db.refresh(project_model)
        return project_model

    def find_by_id(self, project_id: str) -> Optional[models.Project]:
        return self.db.query(models.Project).filter(models.Project.id == str(project_id)).first()

    def find_by_name(self, name: str) -> Optional[models.Project]:
        return self.db.query(models.Project).filter(models.Project.name == name).first()

    def list_all(self) -> List[models.Project]:
        return self.db.query(models.Project).order_by(models.Project.created_at.asc(), models.Project.id.asc()).all()

    def update(self, project: models.Project, updates: Dict[str, Any]) -> models.Project:
        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(project, key, value)
        project.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(project)
        return project

    def delete(self, project: models.Project) -> bool:
        if project:
            self.db.delete(project)
            self.db.commit()
            return True
        return False

    def next_id(self) -> str:
        numeric_ids = [int(row[0]) for row in self.db.query(models.Project.id).all() if str(row[0]).isdigit()]
        return str(max(numeric_ids, default=0) + 1)
