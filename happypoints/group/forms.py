"""Forms for the group blueprint."""

import re

from wtforms import BooleanField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from happypoints.constants import DEFAULT_MAX_MEMBERS, GROUP_CODE_LENGTH, MAX_MEMBERS
from happypoints.core.forms import ApiForm


class GroupForm(ApiForm):
    """Form for creating a new group."""

    name = StringField("Group Name", validators=[DataRequired(), Length(max=100)])
    description = TextAreaField("Description", validators=[Optional()])
    max_members = IntegerField(
        "Max Members",
        default=DEFAULT_MAX_MEMBERS,
        validators=[Optional(), NumberRange(min=2, max=MAX_MEMBERS)],
    )
    is_private = BooleanField("Private Group")


class JoinGroupForm(ApiForm):
    """Form for joining a group with its code."""

    code = StringField(
        "Group Code",
        validators=[DataRequired(), Length(min=GROUP_CODE_LENGTH, max=GROUP_CODE_LENGTH)],
    )


class AwardPointsForm(ApiForm):
    """Form for awarding points to a member.

    The amount is checked by the ledger.
    """

    points = IntegerField("Points")
    task_id = StringField("Task", validators=[Optional()])


class ApplyPenaltyForm(ApiForm):
    """Form for applying a penalty type to a member."""

    penalty_type_id = StringField("Penalty Type", validators=[DataRequired()])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=500)])


class PenaltyTypeForm(ApiForm):
    """Form for creating or editing a penalty type."""

    title = StringField("Title", validators=[Optional(), Length(max=100)])
    description = TextAreaField("Description", validators=[Optional()])
    amount = IntegerField("Amount", validators=[Optional()])
    is_active = BooleanField("Active")


class PrizeForm(ApiForm):
    """Form for creating or editing a prize."""

    title = StringField("Title", validators=[Optional(), Length(max=100)])
    description = TextAreaField("Description", validators=[Optional()])
    points_cost = IntegerField("Points Cost", validators=[Optional()])
    is_active = BooleanField("Active")


class RejectJoinRequestForm(ApiForm):
    """Form for rejecting a join request."""

    reason = TextAreaField("Reason", validators=[Optional(), Length(max=500)])


class InviteForm(ApiForm):
    """Form for inviting people to a group by email.

    ``emails`` may be a JSON list or one string of comma or whitespace
    separated addresses.
    """

    emails = TextAreaField("Emails", validators=[DataRequired()])

    def email_list(self):
        """Return every address submitted, split on commas and whitespace."""
        return [
            email
            for raw in self.emails.raw_data or []
            for email in re.split(r"[,\s]+", str(raw))
            if email
        ]
