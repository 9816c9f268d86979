"""An Area is the top level grouping of the sidebar.

An Area groups Projects under a common responsibility (Work, Home, ...)
Areas are ordered globally by their order value
Deleting an Area keeps its Projects, they move to the area-less list

"""
from datetime import datetime

from database import db


class Area(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    color = db.Column(db.String(16), nullable=False, default="#3b82f6")
    order = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    projects = db.relationship("Project", backref="area", lazy=True)

    def to_dict(self, include_projects=True):
        from services.ordering import sort_items

        payload = {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_projects:
            payload["projects"] = [
                project.to_dict(include_area=False) for project in sort_items(self.projects)
            ]
        return payload

    def __repr__(self):
        return f"<Area {self.name}>"
