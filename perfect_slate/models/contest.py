from datetime import datetime, timezone

from flask import current_app

from perfect_slate import db

CONTEST_STATUSES = ("open", "locked", "in_progress", "completed")
ACTIVE_CONTEST_STATUSES = ("open", "locked", "in_progress")


class Contest(db.Model):
    __tablename__ = "contests"

    id = db.Column(db.Integer, primary_key=True)

    # Contest identification
    sport = db.Column(db.String(10), nullable=False)
    week_number = db.Column(db.Integer, nullable=False)

    # Contest window
    open_time = db.Column(db.DateTime, nullable=False)
    lock_time = db.Column(db.DateTime, nullable=False)
    close_time = db.Column(db.DateTime, nullable=False)

    # Prize pool
    base_prize_pool = db.Column(db.Float, default=0.0)
    rollover_amount = db.Column(db.Float, default=0.0)
    sponsor_bonus = db.Column(db.Float, default=0.0)
    final_prize_pool = db.Column(db.Float, default=0.0)

    # Entry statistics
    total_entries = db.Column(db.Integer, default=0)
    total_winners = db.Column(db.Integer, default=0)
    tokens_used_count = db.Column(db.Integer, default=0)
    perfect_slates_count = db.Column(db.Integer, default=0)

    status = db.Column(db.String(20), nullable=False, default="open")

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    games = db.relationship(
        "Game", backref="contest", lazy="dynamic", cascade="all, delete-orphan"
    )
    slates = db.relationship(
        "Slate", backref="contest", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("sport", "week_number", name="unique_contest_sport_week"),
        db.Index("idx_contest_sport_status", "sport", "status"),
        db.CheckConstraint(
            "status IN ('open', 'locked', 'in_progress', 'completed')",
            name="valid_contest_status",
        ),
    )

    def __repr__(self):
        return f"<Contest {self.sport} week {self.week_number} ({self.status})>"

    @staticmethod
    def get_current(sport):
        """Most recent contest for a sport that is still open, locked or in progress"""
        return (
            Contest.query.filter(
                Contest.sport == sport.upper(),
                Contest.status.in_(ACTIVE_CONTEST_STATUSES),
            )
            .order_by(Contest.week_number.desc())
            .first()
        )

    @staticmethod
    def get_open(sport):
        """The contest odds should be loaded into"""
        return (
            Contest.query.filter_by(sport=sport.upper(), status="open")
            .order_by(Contest.week_number.desc())
            .first()
        )

    @staticmethod
    def create_contest(
        sport,
        week_number,
        open_time,
        lock_time,
        close_time,
        base_prize_pool=None,
        sponsor_bonus=0.0,
    ):
        """Create a contest, rolling over the pool of a previous contest nobody won"""
        sport = sport.upper()
        if base_prize_pool is None:
            base_prize_pool = current_app.config.get("DEFAULT_BASE_PRIZE_POOL", 0.0)

        previous = (
            Contest.query.filter(
                Contest.sport == sport,
                Contest.status == "completed",
                Contest.week_number < week_number,
            )
            .order_by(Contest.week_number.desc())
            .first()
        )
        rollover = 0.0
        if previous and not previous.total_winners:
            rollover = previous.final_prize_pool or 0.0

        contest = Contest(
            sport=sport,
            week_number=week_number,
            open_time=open_time,
            lock_time=lock_time,
            close_time=close_time,
            base_prize_pool=base_prize_pool,
            rollover_amount=rollover,
            sponsor_bonus=sponsor_bonus,
            final_prize_pool=base_prize_pool + rollover + sponsor_bonus,
            total_entries=0,
            total_winners=0,
            tokens_used_count=0,
            perfect_slates_count=0,
            status="open",
        )
        db.session.add(contest)
        return contest

    def get_games(self):
        """Games ordered by start time"""
        from .game import Game

        return self.games.order_by(Game.scheduled_time).all()

    def lock_status(self, now=None, games=None):
        """Pick window status derived from the schedule"""
        from perfect_slate.utils.lock_time import compute_lock_status

        games = games if games is not None else self.get_games()
        return compute_lock_status(
            self,
            games,
            now=now,
            games_remaining=current_app.config.get("LOCK_GAMES_REMAINING", 5),
        )

    def all_games_completed(self):
        games = self.get_games()
        return bool(games) and all(game.is_completed for game in games)

    def to_dict(self, include_lock_status=False, now=None):
        """Convert contest to dictionary for API responses"""
        data = {
            "id": self.id,
            "sport": self.sport,
            "week_number": self.week_number,
            "open_time": self.open_time.isoformat() if self.open_time else None,
            "lock_time": self.lock_time.isoformat() if self.lock_time else None,
            "close_time": self.close_time.isoformat() if self.close_time else None,
            "base_prize_pool": self.base_prize_pool,
            "rollover_amount": self.rollover_amount,
            "sponsor_bonus": self.sponsor_bonus,
            "final_prize_pool": self.final_prize_pool,
            "total_entries": self.total_entries,
            "total_winners": self.total_winners,
            "tokens_used_count": self.tokens_used_count,
            "perfect_slates_count": self.perfect_slates_count,
            "status": self.status,
        }

        if include_lock_status:
            from perfect_slate.utils.lock_time import lock_status_to_dict

            data["lock_status"] = lock_status_to_dict(self.lock_status(now=now))

        return data
