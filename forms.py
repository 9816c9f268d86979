from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    DateTimeField,
    IntegerField,
    SelectField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    DataRequired,
    Length,
    Optional,
    Regexp,
)

from models.task import TASK_PRIORITIES, TASK_STATUSES

HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"
DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
]
STATUS_CHOICES = [(status, status.capitalize()) for status in TASK_STATUSES]
PRIORITY_CHOICES = [("", "None")] + [(priority, priority.capitalize()) for priority in TASK_PRIORITIES]


class ApiForm(FlaskForm):
    """Base for forms filled from JSON bodies; the API carries no CSRF token."""

    class Meta:
        csrf = False


class AreaForm(ApiForm):
    name = StringField("Name", [DataRequired(), Length(max=80)])
    color = StringField(
        "Color",
        [Optional(), Regexp(HEX_COLOR, message="Color must be a hex value such as #3b82f6.")],
    )


class ProjectForm(ApiForm):
    name = StringField("Name", [DataRequired(), Length(max=100)])
    description = TextAreaField("Description")
    notes = TextAreaField("Notes")
    deadline = DateTimeField("Deadline", format=DATETIME_FORMATS, validators=[Optional()])
    area_id = IntegerField("Area", validators=[Optional()])


class TaskSectionForm(ApiForm):
    title = StringField("Title", [DataRequired(), Length(max=120)])
    project_id = IntegerField("Project", validators=[DataRequired(message="A section must belong to a project.")])


class TaskForm(ApiForm):
    title = TextAreaField("Title", [DataRequired()])
    notes = TextAreaField("Notes")
    due_date = DateTimeField("Due Date", format=DATETIME_FORMATS, validators=[Optional()])
    start_date = DateTimeField("Start Date", format=DATETIME_FORMATS, validators=[Optional()])
    reminder_time = DateTimeField("Reminder", format=DATETIME_FORMATS, validators=[Optional()])
    status = SelectField("Status", choices=STATUS_CHOICES, default="pending")
    priority = SelectField("Priority", choices=PRIORITY_CHOICES, default="")
    flagged = BooleanField("Flagged")
    recurrence = StringField("Recurrence", [Optional(), Length(max=120)])
    project_id = IntegerField("Project", validators=[Optional()])
    section_id = IntegerField("Section", validators=[Optional()])
    parent_task_id = IntegerField("Parent Task", validators=[Optional()])


class TagForm(ApiForm):
    name = StringField("Name", [DataRequired(), Length(max=64)])
    color = StringField(
        "Color",
        [Optional(), Regexp(HEX_COLOR, message="Color must be a hex value such as #6b7280.")],
    )
