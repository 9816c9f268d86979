"""A task represent an action that needs to be completed

A Task can contain multiple Tasks (subtasks)
A Task belongs to a Project, or to the inbox when it has no Project
A Task inside a Project can be filed under one of its TaskSections
Tasks are ordered within (project, section, parent task)
Completing a Task completes all its subtasks
Deleting a Task deletes all its subtasks

"""
from __future__ import annotations
from datetime import datetime
from typing import Optional

import bleach
from database import db
from .tag import task_tags
from markdown import markdown as render_markdown
from markupsafe import Markup

TASK_STATUSES = ("pending", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high")


NOTES_EXTENSIONS = ("sane_lists", "fenced_code", "tables")
NOTES_TAGS = frozenset(bleach.sanitizer.ALLOWED_TAGS) | {
    "p", "br", "hr", "pre", "h1", "h2", "h3", "table", "thead", "tbody", "tr", "th", "td",
}
NOTES_ATTRIBUTES = {"a": ["href", "title"]}


def render_notes_html(notes: Optional[str]) -> Markup:
    """Render the Markdown notes of a task or project as sanitized HTML.

    Tags outside ``NOTES_TAGS`` are dropped, keeping their text.
    """
    if not notes or not notes.strip():
        return Markup("")
    html = render_markdown(notes, extensions=list(NOTES_EXTENSIONS), output_format="html5")
    return Markup(bleach.clean(html, tags=NOTES_TAGS, attributes=NOTES_ATTRIBUTES, strip=True))


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.Text, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    start_date = db.Column(db.DateTime, nullable=True)
    reminder_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    priority = db.Column(db.String(10), nullable=True)
    flagged = db.Column(db.Boolean, nullable=False, default=False)
    recurrence = db.Column(db.String(120), nullable=True)
    order = db.Column(db.Float, nullable=False, default=0.0)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    parent_task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=True, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("task_section.id"), nullable=True, index=True)

    subtasks = db.relationship(
        "Task",
        backref=db.backref("parent_task", remote_side=[id]),
        lazy=True,
        cascade="all, delete-orphan",
    )
    tags = db.relationship(
        "Tag",
        secondary=task_tags,
        back_populates="tasks",
        lazy="selectin",
    )

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def complete_task(self):
        self.status = "completed"
        self.completed_at = datetime.utcnow()
        for subtask in self.subtasks:
            subtask.complete_task()

    def uncomplete_task(self):
        self.status = "pending"
        self.completed_at = None
        for subtask in self.subtasks:
            subtask.uncomplete_task()

    @property
    def notes_html(self):
        return render_notes_html(self.notes)

    def to_dict(self, include_subtasks=True):
        from services.ordering import sort_items

        payload = {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "notes_html": str(self.notes_html),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "reminder_time": self.reminder_time.isoformat() if self.reminder_time else None,
            "status": self.status,
            "priority": self.priority,
            "flagged": bool(self.flagged),
            "recurrence": self.recurrence,
            "order": self.order,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "parent_task_id": self.parent_task_id,
            "project_id": self.project_id,
            "section_id": self.section_id,
            "tags": [{"id": tag.id, "name": tag.name, "color": tag.color} for tag in self.tags],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_subtasks:
            payload["subtasks"] = [
                subtask.to_dict(include_subtasks=False) for subtask in sort_items(self.subtasks)
            ]
        return payload

    def __repr__(self):
        return f"<Task {self.title}>"
