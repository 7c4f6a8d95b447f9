from datetime import datetime, timezone

from perfect_slate import db
from perfect_slate.utils.timezone_utils import ensure_utc, get_utc_time

GAME_STATUSES = ("scheduled", "in_progress", "final", "completed")
COMPLETED_STATUSES = ("final", "completed")


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identification
    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=False)
    sport = db.Column(db.String(10), nullable=False)
    external_id = db.Column(db.String(64), unique=True, index=True)

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    home_team_short = db.Column(db.String(10))
    away_team_short = db.Column(db.String(10))

    # Game timing
    scheduled_time = db.Column(db.DateTime, nullable=False)

    # Lines (already adjusted by the no-tie rule)
    home_spread = db.Column(db.Float)
    away_spread = db.Column(db.Float)
    total_points = db.Column(db.Float)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    status = db.Column(db.String(20), nullable=False, default="scheduled")

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_game_contest_time", "contest_id", "scheduled_time"),
        db.Index("idx_game_sport_status", "sport", "status"),
    )

    def __repr__(self):
        return f"<Game {self.away_team_short or self.away_team} @ {self.home_team_short or self.home_team}>"

    @property
    def start_time(self):
        """Scheduled start as an aware UTC datetime"""
        return ensure_utc(self.scheduled_time)

    @property
    def is_completed(self):
        return self.status in COMPLETED_STATUSES

    @property
    def total_score(self):
        """Get total combined score"""
        if self.home_score is None or self.away_score is None:
            return None
        return self.home_score + self.away_score

    def has_started(self, now=None):
        """Check if game has started, by status or by clock"""
        if self.status != "scheduled":
            return True
        now = now or get_utc_time()
        return now >= self.start_time

    def is_available(self, now=None):
        """A game is pickable while scheduled and not yet started"""
        return not self.has_started(now)

    def update_score(self, home_score, away_score, status):
        """
        Update score and status from the score feed.

        Returns:
            bool: True if anything changed
        """
        changed = (
            status != self.status
            or home_score != self.home_score
            or away_score != self.away_score
        )
        if changed:
            self.status = status
            self.home_score = home_score
            self.away_score = away_score
        return changed

    def get_pick(self, pick_type, selection):
        return self.picks.filter_by(pick_type=pick_type, selection=selection).first()

    def to_dict(self, include_picks=False, now=None):
        """Convert game to dictionary for API responses"""
        from perfect_slate.utils.lines import format_line
        from perfect_slate.utils.timezone_utils import format_game_time

        data = {
            "id": self.id,
            "contest_id": self.contest_id,
            "sport": self.sport,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_team_short": self.home_team_short,
            "away_team_short": self.away_team_short,
            "scheduled_time": self.start_time.isoformat() if self.scheduled_time else None,
            "display_time": format_game_time(self.scheduled_time),
            "home_spread": self.home_spread,
            "away_spread": self.away_spread,
            "total_points": self.total_points,
            "home_spread_display": format_line(self.home_spread),
            "away_spread_display": format_line(self.away_spread),
            "total_display": format_line(self.total_points, signed=False),
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "is_available": self.is_available(now),
        }

        if include_picks:
            from .pick import Pick

            data["picks"] = Pick.board_for_game(self)

        return data
