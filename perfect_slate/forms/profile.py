from flask import current_app
from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import Length, Optional, Regexp, ValidationError

from perfect_slate.models.user_profile import UserProfile


class EditProfileForm(FlaskForm):
    username = StringField(
        "Display Name",
        validators=[
            Optional(),
            Length(min=3, max=80),
            Regexp(
                r"^[a-zA-Z0-9 _.-]+$",
                message="Display name contains invalid characters",
            ),
        ],
    )
    favorite_team = StringField("Favorite Team", validators=[Optional(), Length(max=100)])
    favorite_sport = StringField("Favorite Sport", validators=[Optional(), Length(max=10)])

    def __init__(self, profile, *args, **kwargs):
        super(EditProfileForm, self).__init__(*args, **kwargs)
        self.profile = profile

    def validate_username(self, username):
        if username.data and username.data != self.profile.username:
            taken = UserProfile.query.filter(
                UserProfile.username == username.data,
                UserProfile.id != self.profile.id,
            ).first()
            if taken:
                raise ValidationError(
                    "Display name already taken. Please choose a different one."
                )

    def validate_favorite_sport(self, favorite_sport):
        sports = current_app.config.get("SUPPORTED_SPORTS", [])
        if favorite_sport.data and favorite_sport.data.upper() not in sports:
            raise ValidationError(f"Favorite sport must be one of {', '.join(sports)}")
