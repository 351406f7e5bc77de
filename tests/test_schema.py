"""
Tests for the board schema and update command parsing.
"""
import pytest

from pkg.taskboard.errors import ValidationError
from pkg.taskboard.schema import (
    Activity,
    EditActivity,
    MoveActivity,
    Project,
    ProjectStatus,
    RenameProject,
    SetMembers,
    SetStatus,
    parse_activity_update,
    parse_column_set,
    parse_project_update,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_project_defaults():
    """New projects get the three-column template and start in Analyzing"""
    project = Project(id="p1", name="Board", created_by="1", members=["1"])
    assert project.status == ProjectStatus.ANALYZING
    assert [(c.id, c.order) for c in project.columns] == [("todo", 0), ("progress", 1), ("done", 2)]
    assert project.has_member("1")
    assert not project.has_member("2")


def test_project_wire_shape():
    """Projects serialise with the client's field names"""
    project = Project(id="p1", name="Board", created_by="1", members=["1", "2"])
    data = project.to_dict()
    assert data["createdBy"] == "1"
    assert data["status"] == "Analyzing"
    assert data["columns"][0] == {"id": "todo", "name": "To Do", "order": 0}

    restored = Project.from_dict(data)
    assert restored.members == ["1", "2"]
    assert restored.column_ids() == ["todo", "progress", "done"]


def test_project_copy_is_independent():
    project = Project(id="p1", name="Board", created_by="1")
    clone = project.copy()
    clone.columns[0].name = "Backlog"
    clone.members.append("9")
    assert project.columns[0].name == "To Do"
    assert project.members == []


def test_activity_in_development_is_derived():
    activity = Activity(id="a1", project_id="p1", title="Login screen", column="todo")
    assert not activity.in_development
    assert activity.to_dict()["inDevelopment"] is False

    activity.development_by = "2"
    data = activity.to_dict()
    assert data["inDevelopment"] is True
    assert data["developmentBy"] == "2"
    assert Activity.from_dict(data).development_by == "2"


def test_status_from_str_accepts_names_and_labels():
    assert ProjectStatus.from_str("Developing") == ProjectStatus.DEVELOPING
    assert ProjectStatus.from_str("done") == ProjectStatus.DONE
    with pytest.raises(ValidationError):
        ProjectStatus.from_str("Paused")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Command parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_parse_project_update():
    commands = parse_project_update({"name": " Renamed ", "status": "Done", "members": ["1", 2, "1"]})
    assert RenameProject("Renamed") in commands
    assert SetStatus(ProjectStatus.DONE) in commands
    assert SetMembers(("1", "2")) in commands


def test_parse_project_update_rejects_unknown_fields():
    """Identity and column fields cannot be merged in through a partial update"""
    with pytest.raises(ValidationError):
        parse_project_update({"createdBy": "2"})
    with pytest.raises(ValidationError):
        parse_project_update({"columns": []})


def test_parse_activity_update():
    commands = parse_activity_update({"title": "New title", "column": "done"})
    assert commands == [EditActivity(title="New title", description=None), MoveActivity("done")]


def test_parse_activity_update_rejects_claim_fields():
    """Claims only change through the development toggle"""
    with pytest.raises(ValidationError):
        parse_activity_update({"developmentBy": "2", "inDevelopment": True})


def test_parse_activity_update_rejects_blank_title():
    with pytest.raises(ValidationError):
        parse_activity_update({"title": "   "})


def test_parse_column_set_accepts_both_shapes():
    columns = [{"id": "todo", "name": "To Do", "order": 0}]
    assert parse_column_set(columns).columns == tuple(columns)
    assert parse_column_set({"columns": columns}).columns == tuple(columns)
    with pytest.raises(ValidationError):
        parse_column_set({"columns": "todo"})
