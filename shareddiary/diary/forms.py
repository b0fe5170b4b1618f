"""Forms for the diary blueprint."""

from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length

from shareddiary.constants import (
    DEFAULT_MOOD,
    MOODS,
    SORT_NEWEST_FIRST,
    SORT_OLDEST_FIRST,
)


class EntryForm(FlaskForm):
    """Form for writing a diary entry."""

    text = TextAreaField(
        "What happened today?", validators=[DataRequired(), Length(max=5000)]
    )
    mood = SelectField(
        "Mood",
        choices=[(mood, mood) for mood in MOODS],
        default=DEFAULT_MOOD,
    )


class FilterForm(FlaskForm):
    """Query-string filters for the view-diary page.

    Only used for rendering; the values are checked by EntryService.
    """

    class Meta:
        csrf = False

    author = SelectField("Author", choices=[("", "All authors")], validate_choice=False)
    mood = SelectField(
        "Mood",
        choices=[("", "All moods")] + [(mood, mood) for mood in MOODS],
        validate_choice=False,
    )
    date = StringField("Date", render_kw={"type": "date"})
    sort = SelectField(
        "Order",
        choices=[
            (SORT_NEWEST_FIRST, "Newest first"),
            (SORT_OLDEST_FIRST, "Oldest first"),
        ],
        default=SORT_NEWEST_FIRST,
        validate_choice=False,
    )
