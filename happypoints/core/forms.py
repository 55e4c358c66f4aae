"""Base form for validating JSON request bodies."""

from flask_wtf import FlaskForm

from happypoints.errors import ValidationError


class ApiForm(FlaskForm):
    """A form fed from the JSON body of a token-authenticated request."""

    class Meta:
        csrf = False

    def validate_or_raise(self):
        """Validate the submitted data, raising ValidationError on failure."""
        if self.validate_on_submit():
            return
        for field_name, errors in self.errors.items():
            label = getattr(self, field_name).label.text
            raise ValidationError(f"{label}: {errors[0]}")
        raise ValidationError()

    @staticmethod
    def submitted(field):
        """Return the field's data, or None if the request omitted it."""
        return field.data if field.raw_data else None
