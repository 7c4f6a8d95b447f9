import logging
from datetime import datetime, timezone

from flask import current_app

from perfect_slate import db

logger = logging.getLogger(__name__)


class UserProfile(db.Model):
    """Player statistics and token wallet"""

    __tablename__ = "user_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False, index=True
    )

    # Profile information
    username = db.Column(db.String(80))
    favorite_team = db.Column(db.String(100))
    favorite_sport = db.Column(db.String(10))

    # Tokens
    token_balance = db.Column(db.Integer, default=0, nullable=False)
    lifetime_tokens_earned = db.Column(db.Integer, default=0)
    lifetime_tokens_used = db.Column(db.Integer, default=0)
    slates_toward_next_token = db.Column(db.Integer, default=0)

    # Results
    total_earnings = db.Column(db.Float, default=0.0)
    perfect_slates = db.Column(db.Integer, default=0)
    total_slates_submitted = db.Column(db.Integer, default=0)
    slates_graded = db.Column(db.Integer, default=0)
    win_percentage = db.Column(db.Float, default=0.0)
    current_streak = db.Column(db.Integer, default=0)
    longest_streak = db.Column(db.Integer, default=0)
    bad_beats_9 = db.Column(db.Integer, default=0)
    bad_beats_8 = db.Column(db.Integer, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("token_balance >= 0", name="non_negative_token_balance"),
    )

    def __repr__(self):
        return f"<UserProfile user_id={self.user_id} tokens={self.token_balance}>"

    @staticmethod
    def get_or_create(user):
        """Fetch the user's profile, creating it with the starting balance on first access"""
        profile = UserProfile.query.filter_by(user_id=user.id).first()
        if profile:
            return profile

        starting_tokens = current_app.config.get("STARTING_TOKEN_BALANCE", 1)
        profile = UserProfile(
            user_id=user.id,
            username=user.username,
            token_balance=starting_tokens,
            lifetime_tokens_earned=starting_tokens,
            lifetime_tokens_used=0,
            slates_toward_next_token=0,
            total_earnings=0.0,
            perfect_slates=0,
            total_slates_submitted=0,
            slates_graded=0,
            win_percentage=0.0,
            current_streak=0,
            longest_streak=0,
            bad_beats_9=0,
            bad_beats_8=0,
        )
        db.session.add(profile)
        db.session.flush()
        logger.info(f"Created profile for user {user.id} with {starting_tokens} tokens")
        return profile

    def grant_tokens(self, amount):
        """Credit tokens to the wallet"""
        self.token_balance += amount
        self.lifetime_tokens_earned = (self.lifetime_tokens_earned or 0) + amount

    def record_submission(self, tokens_used):
        """
        Debit tokens spent on a slate and advance token earning.

        Every SLATES_PER_TOKEN submitted slates earn one token.

        Returns:
            int: tokens earned by this submission
        """
        if tokens_used > self.token_balance:
            raise ValueError("Insufficient token balance")

        self.token_balance -= tokens_used
        self.lifetime_tokens_used = (self.lifetime_tokens_used or 0) + tokens_used
        self.total_slates_submitted = (self.total_slates_submitted or 0) + 1

        slates_per_token = current_app.config.get("SLATES_PER_TOKEN", 5)
        self.slates_toward_next_token = (self.slates_toward_next_token or 0) + 1
        if slates_per_token and self.slates_toward_next_token >= slates_per_token:
            self.slates_toward_next_token = 0
            self.grant_tokens(1)
            return 1
        return 0

    def record_result(self, slate):
        """Fold a graded slate into the profile statistics"""
        self.slates_graded = (self.slates_graded or 0) + 1

        if slate.result == "perfect":
            self.perfect_slates = (self.perfect_slates or 0) + 1
            self.total_earnings = (self.total_earnings or 0.0) + (slate.payout or 0.0)
            self.current_streak = (self.current_streak or 0) + 1
            self.longest_streak = max(self.longest_streak or 0, self.current_streak)
        else:
            self.current_streak = 0
            if slate.correct_count == 9:
                self.bad_beats_9 = (self.bad_beats_9 or 0) + 1
            elif slate.correct_count == 8:
                self.bad_beats_8 = (self.bad_beats_8 or 0) + 1

        self.win_percentage = round(self.perfect_slates / self.slates_graded * 100, 2)

    def to_dict(self):
        """Convert profile to dictionary for API responses"""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "favorite_team": self.favorite_team,
            "favorite_sport": self.favorite_sport,
            "token_balance": self.token_balance,
            "lifetime_tokens_earned": self.lifetime_tokens_earned,
            "lifetime_tokens_used": self.lifetime_tokens_used,
            "slates_toward_next_token": self.slates_toward_next_token,
            "total_earnings": self.total_earnings,
            "perfect_slates": self.perfect_slates,
            "total_slates_submitted": self.total_slates_submitted,
            "win_percentage": self.win_percentage,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "bad_beats_9": self.bad_beats_9,
            "bad_beats_8": self.bad_beats_8,
        }
