from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField
from wtforms.validators import DataRequired, InputRequired

from perfect_slate.models.pick import SELECTIONS


class SelectPickForm(FlaskForm):
    game_id = IntegerField("Game", validators=[InputRequired()])
    pick_type = SelectField(
        "Pick Type",
        validators=[DataRequired()],
        choices=[("spread", "Spread"), ("total", "Total")],
    )
    selection = SelectField(
        "Selection",
        validators=[DataRequired()],
        choices=[("home", "Home"), ("away", "Away"), ("over", "Over"), ("under", "Under")],
    )

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False

        if self.selection.data not in SELECTIONS[self.pick_type.data]:
            self.selection.errors.append(
                f"'{self.selection.data}' is not a valid {self.pick_type.data} selection"
            )
            return False
        return True
