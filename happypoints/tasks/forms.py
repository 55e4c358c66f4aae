"""Forms for the tasks blueprint."""

from wtforms import BooleanField, IntegerField, StringField, TextAreaField
from wtforms.validators import Length, Optional

from happypoints.core.forms import ApiForm


class TaskForm(ApiForm):
    """Form for creating or editing a task."""

    title = StringField("Title", validators=[Optional(), Length(max=100)])
    description = TextAreaField("Description", validators=[Optional()])
    points = IntegerField("Points", validators=[Optional()])
    is_active = BooleanField("Active")


class RejectCompletionForm(ApiForm):
    """Form for rejecting a task completion."""

    reason = TextAreaField("Reason", validators=[Optional(), Length(max=500)])
