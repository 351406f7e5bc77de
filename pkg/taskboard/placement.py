"""
Board placement: which column an activity sits in.

Activities are not ranked inside a column. Their ``order`` is a creation
order hint drawn from the project's counter and is left alone on moves.
"""
from typing import Optional

from .errors import InvalidColumnError
from .schema import Activity, Project, clean_text, make_id

DEFAULT_COLUMN_ID = "todo"


def initial_column(project: Project, requested: Optional[str] = None) -> str:
    """Column for a new activity: the requested one, else "todo", else the first."""
    if requested:
        if project.get_column(requested) is None:
            raise InvalidColumnError(
                f"Column {requested} does not exist in project {project.id}"
            )
        return requested
    if project.get_column(DEFAULT_COLUMN_ID) is not None:
        return DEFAULT_COLUMN_ID
    return min(project.columns, key=lambda c: c.order).id


def place_activity(
    project: Project,
    title: str,
    description: str = "",
    column: Optional[str] = None,
) -> Activity:
    """Build a new activity in ``project``. Advances the project's counter."""
    title = clean_text(title, "title")
    description = clean_text(description, "description", allow_blank=True)
    target = initial_column(project, column)
    project.activity_seq += 1
    return Activity(
        id=make_id(),
        project_id=project.id,
        title=title,
        description=description,
        column=target,
        order=project.activity_seq,
    )


def move_activity(project: Project, activity: Activity, target_column_id: str) -> Activity:
    """Return ``activity`` placed in ``target_column_id``."""
    if activity.project_id != project.id:
        raise InvalidColumnError(
            f"Activity {activity.id} does not belong to project {project.id}"
        )
    if project.get_column(target_column_id) is None:
        raise InvalidColumnError(
            f"Column {target_column_id} does not exist in project {project.id}"
        )
    moved = activity.copy()
    moved.column = target_column_id
    return moved
