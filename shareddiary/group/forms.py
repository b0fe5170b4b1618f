"""Forms for the group blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length


class CreateGroupForm(FlaskForm):
    """Form for creating a new group."""

    name = StringField("Group Name", validators=[DataRequired(), Length(max=100)])


class JoinGroupForm(FlaskForm):
    """Form for requesting to join a group by its id."""

    group_id = StringField(
        "Group ID",
        validators=[DataRequired()],
        render_kw={"placeholder": "DG-XXXXXX", "autocomplete": "off"},
    )


class MemberActionForm(FlaskForm):
    """Empty form carrying the CSRF token for approve/reject/remove/delete."""
