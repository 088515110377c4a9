from .project import IProjectRepository

__all__ = ["IProjectRepository"]
