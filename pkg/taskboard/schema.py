"""
Board schema: projects, columns, activities and the update commands that
mutate them.

Records serialise to the JSON shape the board client reads
(camelCase keys, `inDevelopment` derived from `developmentBy`).

Updates are explicit commands rather than free-form dict merges, so each
one can be validated against the board invariants on its own.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union
import time
import uuid

from .errors import ValidationError


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def make_id() -> str:
    """Sortable unique record ID (ms-precision timestamp + random hex)."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class ProjectStatus(Enum):
    """Lifecycle label shown on the project card."""
    ANALYZING = "Analyzing"
    DEVELOPING = "Developing"
    DONE = "Done"

    @classmethod
    def from_str(cls, value: str) -> "ProjectStatus":
        for status in cls:
            if value in (status.value, status.name) or value.upper() == status.name:
                return status
        raise ValidationError(
            f"Invalid status: {value!r}. Expected one of: "
            f"{', '.join(s.value for s in cls)}"
        )


@dataclass
class Column:
    """A named bucket on the board."""
    id: str
    name: str
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "order": self.order}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            order=int(data.get("order", 0)),
        )


# Template applied to every new project
DEFAULT_COLUMNS = (
    ("todo", "To Do"),
    ("progress", "In Progress"),
    ("done", "Done"),
)
DEFAULT_COLUMN_NAME = "New Column"


def default_columns() -> List[Column]:
    return [Column(id=cid, name=name, order=i) for i, (cid, name) in enumerate(DEFAULT_COLUMNS)]


@dataclass
class Project:
    """A board: members, status and an ordered column set."""

    id: str
    name: str
    created_by: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.ANALYZING
    members: List[str] = field(default_factory=list)
    columns: List[Column] = field(default_factory=default_columns)

    # Counters and bookkeeping for the column/placement invariants
    column_seq: int = 0
    retired_columns: List[str] = field(default_factory=list)
    activity_seq: int = 0

    created_at: str = field(default_factory=utc_now)
    version: int = 0

    def column_ids(self) -> List[str]:
        return [c.id for c in self.columns]

    def get_column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def has_member(self, user_id: str) -> bool:
        return user_id == self.created_by or user_id in self.members

    def copy(self) -> "Project":
        """Deep enough copy for a read-modify-write cycle."""
        return replace(
            self,
            members=list(self.members),
            columns=[replace(c) for c in self.columns],
            retired_columns=list(self.retired_columns),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "members": list(self.members),
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "columns": [c.to_dict() for c in sorted(self.columns, key=lambda c: c.order)],
            "columnSeq": self.column_seq,
            "retiredColumns": list(self.retired_columns),
            "activitySeq": self.activity_seq,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        columns = [Column.from_dict(c) for c in data.get("columns") or []]
        columns.sort(key=lambda c: c.order)
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            created_by=str(data.get("createdBy", "")),
            description=data.get("description", ""),
            status=ProjectStatus.from_str(data.get("status") or ProjectStatus.ANALYZING.value),
            members=[str(m) for m in data.get("members", [])],
            columns=columns,
            column_seq=int(data.get("columnSeq", 0)),
            retired_columns=list(data.get("retiredColumns", [])),
            activity_seq=int(data.get("activitySeq", 0)),
            created_at=data.get("createdAt") or utc_now(),
            version=int(data.get("version", 0)),
        )


@dataclass
class Activity:
    """A work item placed in one column of its project."""

    id: str
    project_id: str
    title: str
    column: str
    description: str = ""
    development_by: Optional[str] = None   # claim holder, None when unclaimed
    order: int = 0                         # creation order hint, never re-packed
    created_at: str = field(default_factory=utc_now)
    version: int = 0

    @property
    def in_development(self) -> bool:
        return self.development_by is not None

    def copy(self) -> "Activity":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "column": self.column,
            "inDevelopment": self.in_development,
            "developmentBy": self.development_by,
            "order": self.order,
            "createdAt": self.created_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Activity":
        holder = data.get("developmentBy")
        return cls(
            id=str(data["id"]),
            project_id=str(data["projectId"]),
            title=data.get("title", ""),
            column=str(data.get("column", "")),
            description=data.get("description", ""),
            development_by=str(holder) if holder is not None else None,
            order=int(data.get("order", 0)),
            created_at=data.get("createdAt") or utc_now(),
            version=int(data.get("version", 0)),
        )


# ── Update commands ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RenameProject:
    name: str


@dataclass(frozen=True)
class SetDescription:
    description: str


@dataclass(frozen=True)
class SetStatus:
    status: ProjectStatus


@dataclass(frozen=True)
class SetMembers:
    members: tuple


@dataclass(frozen=True)
class EditActivity:
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class MoveActivity:
    column: str


@dataclass(frozen=True)
class AddColumn:
    name: Optional[str] = None


@dataclass(frozen=True)
class RenameColumn:
    column_id: str
    name: str


@dataclass(frozen=True)
class RemoveColumn:
    column_id: str


@dataclass(frozen=True)
class ReorderColumns:
    column_ids: tuple


@dataclass(frozen=True)
class ReplaceColumns:
    columns: tuple   # of dicts {id?, name, order?}


ProjectCommand = Union[RenameProject, SetDescription, SetStatus, SetMembers]
ActivityCommand = Union[EditActivity, MoveActivity]
ColumnCommand = Union[AddColumn, RenameColumn, RemoveColumn, ReorderColumns, ReplaceColumns]


PROJECT_FIELDS = {"name", "description", "status", "members"}
ACTIVITY_FIELDS = {"title", "description", "column"}


def _require_text(data: Dict[str, Any], key: str, allow_blank: bool = False) -> str:
    return clean_text(data.get(key), key, allow_blank=allow_blank)


def clean_text(value: Any, key: str, allow_blank: bool = False) -> str:
    """Stripped string value of ``key``; ValidationError for anything else."""
    if value is None and allow_blank:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if not value and not allow_blank:
        raise ValidationError(f"{key} is required")
    return value


def _reject_unknown(data: Dict[str, Any], allowed: set, kind: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(f"{kind} update must be a JSON object")
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(
            f"Cannot update {kind} field(s): {', '.join(unknown)}. "
            f"Allowed: {', '.join(sorted(allowed))}"
        )


def parse_project_update(data: Dict[str, Any]) -> List[ProjectCommand]:
    """Turn a partial-update payload into project commands."""
    _reject_unknown(data, PROJECT_FIELDS, "project")
    commands: List[ProjectCommand] = []
    if "name" in data:
        commands.append(RenameProject(_require_text(data, "name")))
    if "description" in data:
        commands.append(SetDescription(_require_text(data, "description", allow_blank=True)))
    if "status" in data:
        if not isinstance(data["status"], str):
            raise ValidationError("status must be a string")
        commands.append(SetStatus(ProjectStatus.from_str(data["status"])))
    if "members" in data:
        members = data["members"]
        if not isinstance(members, list) or not all(isinstance(m, (str, int)) for m in members):
            raise ValidationError("members must be a list of user ids")
        commands.append(SetMembers(tuple(dict.fromkeys(str(m) for m in members))))
    return commands


def parse_activity_update(data: Dict[str, Any]) -> List[ActivityCommand]:
    """Turn a partial-update payload into activity commands.

    Claim fields are not writable here; the development toggle is the only
    way to change them.
    """
    _reject_unknown(data, ACTIVITY_FIELDS, "activity")
    commands: List[ActivityCommand] = []
    title = _require_text(data, "title") if "title" in data else None
    description = (
        _require_text(data, "description", allow_blank=True) if "description" in data else None
    )
    if title is not None or description is not None:
        commands.append(EditActivity(title=title, description=description))
    if "column" in data:
        commands.append(MoveActivity(_require_text(data, "column")))
    return commands


def parse_column_set(payload: Any) -> ReplaceColumns:
    """Accept either a bare list of columns or {"columns": [...]}."""
    columns = payload.get("columns") if isinstance(payload, dict) else payload
    if not isinstance(columns, list):
        raise ValidationError("columns must be a list of {id, name, order}")
    entries = []
    for entry in columns:
        if not isinstance(entry, dict):
            raise ValidationError("each column must be an object")
        entries.append(dict(entry))
    return ReplaceColumns(tuple(entries))
