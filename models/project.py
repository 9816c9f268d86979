"""A Project is a finite outcome made of Tasks.

A Project may belong to an Area, or float without one
A Project can split its Tasks into TaskSections
Projects are ordered within their Area
Deleting a Project deletes its sections and tasks

"""
from datetime import datetime

from database import db
from models.task import render_notes_html


class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.DateTime, nullable=True)
    order = db.Column(db.Float, nullable=False, default=0.0)
    area_id = db.Column(db.Integer, db.ForeignKey("area.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    tasks = db.relationship("Task", backref="project", lazy=True, cascade="all, delete-orphan")
    sections = db.relationship(
        "TaskSection",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def total_tasks_count(self) -> int:
        return len([task for task in self.tasks if task.parent_task_id is None])

    @property
    def completed_tasks_count(self) -> int:
        return len(
            [
                task
                for task in self.tasks
                if task.parent_task_id is None and task.status == "completed"
            ]
        )

    def to_dict(self, include_area=True):
        payload = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "notes": self.notes,
            "notes_html": str(render_notes_html(self.notes)),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "order": self.order,
            "area_id": self.area_id,
            "total_tasks_count": self.total_tasks_count,
            "completed_tasks_count": self.completed_tasks_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_area:
            payload["area"] = (
                {"id": self.area.id, "name": self.area.name, "color": self.area.color}
                if self.area
                else None
            )
        return payload

    def __repr__(self):
        return f"<Project {self.name}>"
