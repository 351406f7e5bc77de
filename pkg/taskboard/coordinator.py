"""
Board coordinator: the one entry point for reading and mutating the board.

Each mutating call is a critical section on its project (an in-process
lock) wrapped in an optimistic read-compute-commit cycle (VersionGuard),
so concurrent requests cannot both act on the same stale read. The guard
is only ever committed from here.

Cross-record rules enforced at commit time:
  - deleting a project deletes all of its activities in the same batch
  - a column can only disappear while no activity references it
  - an activity can only land in a column the stored project still has
"""
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import claims, columns, placement
from .access import BoardAccess
from .errors import (
    ClaimConflictError,
    HasActivitiesError,
    InvalidColumnError,
    NotFoundError,
    StaleWriteError,
    ValidationError,
)
from .events import (
    BoardEvents,
    ACTIVITY_CREATED,
    ACTIVITY_DELETED,
    ACTIVITY_UPDATED,
    CLAIM_CHANGED,
    PROJECT_CREATED,
    PROJECT_DELETED,
    PROJECT_UPDATED,
)
from .guard import Change, VersionGuard, DEFAULT_MAX_RETRIES
from .schema import (
    Activity,
    ActivityCommand,
    AddColumn,
    ColumnCommand,
    EditActivity,
    MoveActivity,
    Project,
    ProjectCommand,
    RemoveColumn,
    RenameColumn,
    RenameProject,
    ReorderColumns,
    ReplaceColumns,
    SetDescription,
    SetMembers,
    SetStatus,
    clean_text,
    make_id,
)
from .store import ACTIVITIES, PROJECTS

logger = logging.getLogger(__name__)


class BoardCoordinator:
    """Sequences claims, columns and placement into atomic board operations."""

    def __init__(
        self,
        store,
        access: Optional[BoardAccess] = None,
        events: Optional[BoardEvents] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self.guard = VersionGuard(store, max_retries=max_retries)
        self.access = access or BoardAccess()
        self.events = events or BoardEvents()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ── Internals ───────────────────────────────────────────────────────────

    @contextmanager
    def _project_lock(self, project_id: str):
        with self._locks_guard:
            lock = self._locks.setdefault(project_id, threading.RLock())
        with lock:
            yield

    def _load_project(self, project_id: str) -> Project:
        data = self.guard.load(PROJECTS, project_id)
        if data is None:
            raise NotFoundError(f"Project {project_id} not found")
        return Project.from_dict(data)

    def _load_activity(self, activity_id: str) -> Activity:
        data = self.guard.load(ACTIVITIES, activity_id)
        if data is None:
            raise NotFoundError(f"Activity {activity_id} not found")
        return Activity.from_dict(data)

    def _project_activities(self, project_id: str) -> List[Activity]:
        return [Activity.from_dict(d) for d in self.guard.scan(ACTIVITIES, project_id=project_id)]

    def _in_project(self, project_id: str, operation: Callable):
        with self._project_lock(project_id):
            return self.guard.retrying(operation)

    @staticmethod
    def _columns_exist(project_id: str, column_ids: Iterable[str]) -> Callable:
        """Commit-time check: the stored project still has these columns."""
        wanted = set(column_ids)

        def check(store):
            stored = store.get(PROJECTS, project_id)
            if stored is None:
                raise NotFoundError(f"Project {project_id} not found")
            present = {c["id"] for c in stored.get("columns", [])}
            missing = sorted(wanted - present)
            if missing:
                raise InvalidColumnError(
                    f"Column {', '.join(missing)} does not exist in project {project_id}"
                )
        return check

    @staticmethod
    def _columns_empty(project_id: str, column_ids: Iterable[str]) -> Callable:
        """Commit-time check: no stored activity references these columns."""
        dropped = set(column_ids)

        def check(store):
            if not dropped:
                return
            busy = sorted({
                a.get("column") for a in store.scan(ACTIVITIES, project_id=project_id)
                if a.get("column") in dropped
            })
            if busy:
                raise HasActivitiesError(
                    f"Column(s) {', '.join(busy)} still have activities; move them before removing"
                )
        return check

    # ── Projects ────────────────────────────────────────────────────────────

    def create_project(self, user_id: str, name: str, description: str = "") -> Project:
        name = clean_text(name, "name")
        description = clean_text(description, "description", allow_blank=True)
        if not user_id:
            raise ValidationError("user id is required")
        project = Project(
            id=make_id(),
            name=name,
            description=description,
            created_by=user_id,
            members=[user_id],
        )
        columns.check_columns(project)
        committed = self.guard.commit([Change.create(PROJECTS, project.to_dict())])
        project = Project.from_dict(committed[0])
        logger.info("Project %s created by %s", project.id, user_id)
        self.events.emit(PROJECT_CREATED, project=project.to_dict())
        return project

    def get_project(self, project_id: str, user_id: str) -> Project:
        project = self._load_project(project_id)
        self.access.require_view(project, user_id)
        return project

    def list_projects(self, user_id: str) -> List[Project]:
        projects = [Project.from_dict(d) for d in self.guard.scan(PROJECTS)]
        visible = [p for p in projects if self.access.can_view(p, user_id)]
        return sorted(visible, key=lambda p: p.created_at)

    def update_project(self, project_id: str, user_id: str, commands: List[ProjectCommand]) -> Project:
        def attempt():
            project = self._load_project(project_id)
            self.access.require_edit(project, user_id)
            updated = project.copy()
            for command in commands:
                if isinstance(command, RenameProject):
                    updated.name = command.name
                elif isinstance(command, SetDescription):
                    updated.description = command.description
                elif isinstance(command, SetStatus):
                    updated.status = command.status
                elif isinstance(command, SetMembers):
                    updated.members = list(command.members)
                else:
                    raise ValidationError(f"Unsupported project command: {command!r}")
            committed = self.guard.commit([Change.update(PROJECTS, updated.to_dict(), project.version)])
            return Project.from_dict(committed[0])

        project = self._in_project(project_id, attempt)
        logger.info("Project %s updated by %s", project_id, user_id)
        self.events.emit(PROJECT_UPDATED, project=project.to_dict())
        return project

    def delete_project(self, project_id: str, user_id: str) -> List[str]:
        """Delete a project and every activity in it. Returns deleted activity ids."""
        def attempt():
            project = self._load_project(project_id)
            self.access.require_delete(project, user_id)
            activities = self._project_activities(project_id)
            doomed = {a.id for a in activities}

            def nothing_left_behind(store):
                late = [a["id"] for a in store.scan(ACTIVITIES, project_id=project_id)
                        if a["id"] not in doomed]
                if late:
                    raise StaleWriteError(
                        f"Project {project_id} gained activities while being deleted"
                    )

            changes = [Change.delete(PROJECTS, project.id, project.version)]
            changes += [Change.delete(ACTIVITIES, a.id, a.version) for a in activities]
            self.guard.commit(changes, checks=[nothing_left_behind])
            return sorted(doomed)

        deleted = self._in_project(project_id, attempt)
        with self._locks_guard:
            self._locks.pop(project_id, None)
        logger.info("Project %s deleted by %s with %d activities", project_id, user_id, len(deleted))
        self.events.emit(PROJECT_DELETED, project_id=project_id, activity_ids=deleted)
        return deleted

    # ── Columns ─────────────────────────────────────────────────────────────

    def change_columns(self, project_id: str, user_id: str, command: ColumnCommand) -> Project:
        """Apply one column command to the project's column set."""
        def mutate(project: Project, activities: List[Activity]) -> None:
            if isinstance(command, AddColumn):
                columns.add_column(project, command.name)
            elif isinstance(command, RenameColumn):
                columns.rename_column(project, command.column_id, command.name)
            elif isinstance(command, RemoveColumn):
                columns.remove_column(project, command.column_id, activities)
            elif isinstance(command, ReorderColumns):
                columns.reorder(project, list(command.column_ids))
            elif isinstance(command, ReplaceColumns):
                columns.replace_columns(project, command.columns, activities)
            else:
                raise ValidationError(f"Unsupported column command: {command!r}")

        def attempt():
            project = self._load_project(project_id)
            self.access.require_edit(project, user_id)
            activities = self._project_activities(project_id)
            updated = project.copy()
            mutate(updated, activities)
            columns.check_columns(updated)
            dropped = set(project.column_ids()) - set(updated.column_ids())
            committed = self.guard.commit(
                [Change.update(PROJECTS, updated.to_dict(), project.version)],
                checks=[self._columns_empty(project_id, dropped)],
            )
            return Project.from_dict(committed[0])

        project = self._in_project(project_id, attempt)
        logger.info("Columns of project %s changed by %s (%s): %s",
                    project_id, user_id, type(command).__name__, project.column_ids())
        self.events.emit(PROJECT_UPDATED, project=project.to_dict())
        return project

    def add_column(self, project_id: str, user_id: str, name: Optional[str] = None) -> Project:
        return self.change_columns(project_id, user_id, AddColumn(name))

    def rename_column(self, project_id: str, user_id: str, column_id: str, name: str) -> Project:
        return self.change_columns(project_id, user_id, RenameColumn(column_id, name))

    def remove_column(self, project_id: str, user_id: str, column_id: str) -> Project:
        return self.change_columns(project_id, user_id, RemoveColumn(column_id))

    def reorder_columns(self, project_id: str, user_id: str, column_ids: List[str]) -> Project:
        return self.change_columns(project_id, user_id, ReorderColumns(tuple(column_ids)))

    def replace_columns(self, project_id: str, user_id: str, entries: Iterable[dict]) -> Project:
        return self.change_columns(project_id, user_id, ReplaceColumns(tuple(entries)))

    # ── Activities ──────────────────────────────────────────────────────────

    def list_activities(self, project_id: str, user_id: str) -> List[Activity]:
        project = self._load_project(project_id)
        self.access.require_view(project, user_id)
        return sorted(self._project_activities(project_id), key=lambda a: (a.order, a.created_at))

    def get_activity(self, activity_id: str, user_id: str) -> Activity:
        activity = self._load_activity(activity_id)
        self.access.require_view(self._load_project(activity.project_id), user_id)
        return activity

    def create_activity(
        self,
        project_id: str,
        user_id: str,
        title: str,
        description: str = "",
        column: Optional[str] = None,
    ) -> Activity:
        def attempt():
            project = self._load_project(project_id)
            self.access.require_edit(project, user_id)
            updated = project.copy()
            activity = placement.place_activity(updated, title, description, column)
            # The project write carries the counter and pins the column set
            committed = self.guard.commit([
                Change.update(PROJECTS, updated.to_dict(), project.version),
                Change.create(ACTIVITIES, activity.to_dict()),
            ])
            return Activity.from_dict(committed[1])

        activity = self._in_project(project_id, attempt)
        logger.info("Activity %s created in %s/%s by %s",
                    activity.id, project_id, activity.column, user_id)
        self.events.emit(ACTIVITY_CREATED, activity=activity.to_dict())
        return activity

    def update_activity(self, activity_id: str, user_id: str, commands: List[ActivityCommand]) -> Activity:
        project_id = self._load_activity(activity_id).project_id

        def attempt():
            activity = self._load_activity(activity_id)
            project = self._load_project(project_id)
            self.access.require_edit(project, user_id)
            updated = activity.copy()
            targets = []
            for command in commands:
                if isinstance(command, EditActivity):
                    if command.title is not None:
                        updated.title = command.title
                    if command.description is not None:
                        updated.description = command.description
                elif isinstance(command, MoveActivity):
                    updated = placement.move_activity(project, updated, command.column)
                    targets.append(command.column)
                else:
                    raise ValidationError(f"Unsupported activity command: {command!r}")
            committed = self.guard.commit(
                [Change.update(ACTIVITIES, updated.to_dict(), activity.version)],
                checks=[self._columns_exist(project_id, targets)] if targets else (),
            )
            return Activity.from_dict(committed[0])

        activity = self._in_project(project_id, attempt)
        logger.info("Activity %s updated by %s", activity_id, user_id)
        self.events.emit(ACTIVITY_UPDATED, activity=activity.to_dict())
        return activity

    def move_activity(self, activity_id: str, user_id: str, column_id: str) -> Activity:
        return self.update_activity(activity_id, user_id, [MoveActivity(column_id)])

    def delete_activity(self, activity_id: str, user_id: str) -> Activity:
        project_id = self._load_activity(activity_id).project_id

        def attempt():
            activity = self._load_activity(activity_id)
            self.access.require_edit(self._load_project(project_id), user_id)
            self.guard.commit([Change.delete(ACTIVITIES, activity.id, activity.version)])
            return activity

        activity = self._in_project(project_id, attempt)
        logger.info("Activity %s deleted by %s", activity_id, user_id)
        self.events.emit(ACTIVITY_DELETED, activity=activity.to_dict())
        return activity

    def toggle_development(self, activity_id: str, user_id: str) -> Activity:
        """Claim or release the activity for ``user_id``."""
        project_id = self._load_activity(activity_id).project_id

        def attempt():
            activity = self._load_activity(activity_id)
            self.access.require_edit(self._load_project(project_id), user_id)
            updated = claims.toggle(activity, user_id)
            committed = self.guard.commit(
                [Change.update(ACTIVITIES, updated.to_dict(), activity.version)]
            )
            return Activity.from_dict(committed[0])

        try:
            activity = self._in_project(project_id, attempt)
        except ClaimConflictError as e:
            logger.warning("Claim conflict on %s: %s wanted it, %s holds it",
                           activity_id, user_id, e.holder)
            raise
        logger.info("Activity %s %s by %s", activity_id,
                    "claimed" if activity.in_development else "released", user_id)
        self.events.emit(CLAIM_CHANGED, activity=activity.to_dict())
        return activity

    # ── Convenience for the API layer ───────────────────────────────────────

    def board(self, project_id: str, user_id: str) -> Tuple[Project, List[Activity]]:
        """Project plus its activities, for a full board render."""
        return self.get_project(project_id, user_id), self.list_activities(project_id, user_id)
