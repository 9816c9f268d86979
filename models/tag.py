from datetime import datetime

from database import db


# Association table linking tasks and tags
# Using lowercase table name to stay consistent with SQLAlchemy's conventions
# and avoid conflicts with future migrations.
task_tags = db.Table(
    "task_tags",
    db.Column("task_id", db.Integer, db.ForeignKey("task.id"), primary_key=True),
    db.Column("tag_id", db.Integer, db.ForeignKey("tag.id"), primary_key=True),
)


class Tag(db.Model):
    __tablename__ = "tag"

    __table_args__ = (
        db.UniqueConstraint("name", name="uq_tag_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(16), nullable=False, default="#6b7280")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    tasks = db.relationship(
        "Task",
        secondary=task_tags,
        back_populates="tags",
        lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "task_count": len(self.tasks) if self.tasks is not None else 0,
        }

    def __repr__(self):
        return f"<Tag #{self.name}>"
