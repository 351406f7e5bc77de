"""
Project access rules.

Members and the creator may read and mutate a project's board. Only the
creator may delete the project.
"""
from .errors import PermissionDeniedError
from .schema import Project


class BoardAccess:
    """Membership checks used by the coordinator."""

    def can_view(self, project: Project, user_id: str) -> bool:
        return project.has_member(user_id)

    def can_edit(self, project: Project, user_id: str) -> bool:
        return project.has_member(user_id)

    def can_delete(self, project: Project, user_id: str) -> bool:
        return user_id == project.created_by

    def require_view(self, project: Project, user_id: str) -> None:
        if not self.can_view(project, user_id):
            raise PermissionDeniedError(f"No access to project {project.id}")

    def require_edit(self, project: Project, user_id: str) -> None:
        if not self.can_edit(project, user_id):
            raise PermissionDeniedError(f"No permission to edit project {project.id}")

    def require_delete(self, project: Project, user_id: str) -> None:
        if not self.can_delete(project, user_id):
            raise PermissionDeniedError("Only the project creator can delete it")
