from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, JSON
from ..database import Base

class Project(Base):
    """
    원격 호스트에서 PM2로 실행되는 애플리케이션 하나를 나타냅니다.
    원격 작업 디렉터리(path)와 PM2 프로세스 이름(pm2_name),
    사용자 정의 빌드/배포 단계를 가집니다.
    """
    __tablename__ = "projects"
    # id는 스키마가 아니라 생성 로직(최대 숫자 id + 1)으로 고유성을 보장합니다.
    id = Column(String, primary_key=True)
    name = Column(String, unique=True, nullable=False, index=True)
    path = Column(String, nullable=False)
    pm2_name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(String, nullable=False, default="mern")
    build_steps = Column(JSON, nullable=False, default=list)
    deploy_steps = Column(JSON, nullable=False, default=list)
    git_url = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "pm2Name": self.pm2_name,
            "description": self.description,
            "type": self.type,
            "buildSteps": list(self.build_steps or []),
            "deploySteps": list(self.deploy_steps or []),
            "gitUrl": self.git_url,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
