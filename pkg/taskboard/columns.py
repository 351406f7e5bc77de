"""
Column registry: the ordered column set of a project.

Invariants kept after every operation:
  - at least one column
  - column ids unique, never reused after removal
  - orders are exactly 0..n-1 in display order

Functions mutate the Project they are given; the coordinator always hands
them a private copy, so a raised error leaves stored state untouched.
"""
from typing import Any, Dict, Iterable, List, Optional

from .errors import (
    HasActivitiesError,
    InvalidStateError,
    LastColumnError,
    NotFoundError,
    ValidationError,
)
from .schema import Activity, Column, Project, DEFAULT_COLUMN_NAME

# Path segments under /columns/ taken by fixed routes
RESERVED_COLUMN_IDS = ("order", "new")


def normalize(project: Project) -> Project:
    """Rewrite orders to 0..n-1 following the current list order."""
    for index, column in enumerate(project.columns):
        column.order = index
    return project


def check_columns(project: Project) -> None:
    """Raise InvalidStateError if the column set is structurally broken."""
    ids = project.column_ids()
    if not ids:
        raise InvalidStateError(f"Project {project.id} has no columns")
    if len(set(ids)) != len(ids):
        raise InvalidStateError(f"Project {project.id} has duplicate column ids")
    if [c.order for c in project.columns] != list(range(len(ids))):
        raise InvalidStateError(f"Project {project.id} column orders are not contiguous")
    reused = set(ids) & set(project.retired_columns)
    if reused:
        raise InvalidStateError(f"Project {project.id} reuses removed column(s): {sorted(reused)}")


def _require_column(project: Project, column_id: str) -> Column:
    column = project.get_column(column_id)
    if column is None:
        raise NotFoundError(f"Column {column_id} not found in project {project.id}")
    return column


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Column name is required")
    return name.strip()


def _next_column_id(project: Project) -> str:
    taken = set(project.column_ids()) | set(project.retired_columns)
    while True:
        project.column_seq += 1
        candidate = f"col-{project.column_seq}"
        if candidate not in taken:
            return candidate


def _in_use(column_ids: Iterable[str], activities: Iterable[Activity]) -> List[str]:
    wanted = set(column_ids)
    return sorted({a.column for a in activities if a.column in wanted})


def add_column(project: Project, name: Optional[str] = None) -> Column:
    """Append a column with a fresh id."""
    column = Column(
        id=_next_column_id(project),
        name=_clean_name(name) if name is not None else DEFAULT_COLUMN_NAME,
        order=len(project.columns),
    )
    project.columns.append(column)
    normalize(project)
    return column


def rename_column(project: Project, column_id: str, name: str) -> Column:
    column = _require_column(project, column_id)
    column.name = _clean_name(name)
    return column


def remove_column(project: Project, column_id: str, activities: Iterable[Activity]) -> None:
    """Remove an empty column that is not the project's last one."""
    _require_column(project, column_id)
    if len(project.columns) <= 1:
        raise LastColumnError(f"Project {project.id} must keep at least one column")
    if _in_use([column_id], activities):
        raise HasActivitiesError(
            f"Column {column_id} still has activities; move them before removing it"
        )
    project.columns = [c for c in project.columns if c.id != column_id]
    project.retired_columns.append(column_id)
    normalize(project)


def reorder(project: Project, ordered_ids: List[str]) -> None:
    """Put columns in the given order. ``ordered_ids`` must be a permutation."""
    ordered_ids = [str(cid) for cid in ordered_ids]
    if sorted(ordered_ids) != sorted(project.column_ids()) or len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError(
            "Column order must list every column of the project exactly once"
        )
    by_id = {c.id: c for c in project.columns}
    project.columns = [by_id[cid] for cid in ordered_ids]
    normalize(project)


def replace_columns(
    project: Project,
    entries: Iterable[Dict[str, Any]],
    activities: Iterable[Activity],
) -> List[str]:
    """
    Replace the whole column set with ``entries`` ({id?, name, order?}).

    Entries are sorted by their supplied order, ties keep list position.
    Existing ids keep their identity, unknown ids are added, entries without
    an id get a generated one. Returns the ids of dropped columns.
    """
    indexed = list(enumerate(entries))
    if not indexed:
        raise LastColumnError(f"Project {project.id} must keep at least one column")

    def sort_key(item):
        position, entry = item
        order = entry.get("order")
        if order is None:
            return (position, position)
        if isinstance(order, bool) or not isinstance(order, (int, float)):
            raise ValidationError("Column order must be a number")
        return (order, position)

    new_columns: List[Column] = []
    seen = set()
    pending_ids = []
    for _, entry in sorted(indexed, key=sort_key):
        name = _clean_name(entry.get("name"))
        column_id = entry.get("id")
        if column_id in (None, ""):
            column = Column(id="", name=name)
            pending_ids.append(column)
        else:
            column_id = str(column_id)
            if column_id in RESERVED_COLUMN_IDS:
                raise ValidationError(f"Column id {column_id} is reserved")
            if column_id in seen:
                raise ValidationError(f"Duplicate column id: {column_id}")
            if column_id in project.retired_columns:
                raise ValidationError(f"Column id {column_id} was removed and cannot be reused")
            seen.add(column_id)
            column = Column(id=column_id, name=name)
        new_columns.append(column)

    dropped = [cid for cid in project.column_ids() if cid not in seen]
    busy = _in_use(dropped, activities)
    if busy:
        raise HasActivitiesError(
            f"Column(s) {', '.join(busy)} still have activities; move them before removing"
        )

    project.columns = new_columns
    project.retired_columns.extend(dropped)
    for column in pending_ids:
        column.id = _next_column_id(project)
    normalize(project)
    return dropped
