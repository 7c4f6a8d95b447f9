from datetime import datetime, timezone

from perfect_slate import db

SLATE_RESULTS = ("pending", "perfect", "busted")


class Slate(db.Model):
    """A submitted set of picks plus token count for one user and contest"""

    __tablename__ = "slates"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=False)

    tokens_used = db.Column(db.Integer, default=0, nullable=False)

    # Results (calculated as games complete)
    correct_count = db.Column(db.Integer, default=0)
    result = db.Column(db.String(10), nullable=False, default="pending")
    payout = db.Column(db.Float, default=0.0)

    # Timestamps
    submitted_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    graded_at = db.Column(db.DateTime)

    # Relationships
    entries = db.relationship(
        "SlateEntry", backref="slate", lazy="select", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "contest_id", name="unique_user_contest_slate"),
        db.Index("idx_slate_contest", "contest_id"),
    )

    def __repr__(self):
        return f"<Slate user_id={self.user_id} contest_id={self.contest_id} {self.result}>"

    @staticmethod
    def get_for_user(user_id, contest_id):
        return Slate.query.filter_by(user_id=user_id, contest_id=contest_id).first()

    @property
    def pick_ids(self):
        return [entry.pick_id for entry in self.entries]

    @property
    def is_graded(self):
        return self.result != "pending"

    def to_dict(self, include_entries=True):
        """Convert slate to dictionary for API responses"""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "contest_id": self.contest_id,
            "tokens_used": self.tokens_used,
            "correct_count": self.correct_count,
            "result": self.result,
            "payout": self.payout,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }

        if include_entries:
            data["entries"] = [entry.to_dict() for entry in self.entries]

        return data


class SlateEntry(db.Model):
    __tablename__ = "slate_entries"

    id = db.Column(db.Integer, primary_key=True)

    slate_id = db.Column(db.Integer, db.ForeignKey("slates.id"), nullable=False)
    pick_id = db.Column(db.Integer, db.ForeignKey("picks.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Line at submission time; later odds syncs only move Pick.line_value
    line_value = db.Column(db.Float, nullable=False)

    # None until the game is final
    is_correct = db.Column(db.Boolean)

    pick = db.relationship("Pick")

    __table_args__ = (
        db.UniqueConstraint("slate_id", "pick_id", name="unique_slate_pick"),
        db.Index("idx_slate_entry_game", "game_id"),
    )

    def __repr__(self):
        return f"<SlateEntry slate_id={self.slate_id} pick_id={self.pick_id}>"

    def to_dict(self):
        return {
            "pick_id": self.pick_id,
            "game_id": self.game_id,
            "pick_type": self.pick.pick_type if self.pick else None,
            "selection": self.pick.selection if self.pick else None,
            "line_value": self.line_value,
            "is_correct": self.is_correct,
        }
