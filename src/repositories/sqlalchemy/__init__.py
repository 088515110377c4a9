from .sqlalchemy_project_repository import SqlalchemyProjectRepository

__all__ = ["SqlalchemyProjectRepository"]
