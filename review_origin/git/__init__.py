"""Local git access for origins."""

from review_origin.git.repository import GitRepository, Repository

__all__ = ["GitRepository", "Repository"]
