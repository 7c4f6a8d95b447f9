from datetime import datetime, timezone

from perfect_slate import db

PICK_TYPES = ("spread", "total")
SELECTIONS = {
    "spread": ("home", "away"),
    "total": ("over", "under"),
}


class Pick(db.Model):
    """One selectable outcome on a game (a side of the spread or total)"""

    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Pick details
    pick_type = db.Column(db.String(10), nullable=False)
    selection = db.Column(db.String(10), nullable=False)
    line_value = db.Column(db.Float, nullable=False)

    # How many submitted slates chose this outcome
    times_selected = db.Column(db.Integer, default=0, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "game_id", "pick_type", "selection", name="unique_game_pick_selection"
        ),
        db.Index("idx_pick_game", "game_id"),
        db.CheckConstraint("pick_type IN ('spread', 'total')", name="valid_pick_type"),
    )

    def __repr__(self):
        return f"<Pick game_id={self.game_id} {self.pick_type}/{self.selection} {self.line_value}>"

    @staticmethod
    def is_valid_selection(pick_type, selection):
        return selection in SELECTIONS.get(pick_type, ())

    @staticmethod
    def create_for_game(game, spread, total):
        """
        Create the four pick options for a freshly ingested game

        Args:
            game: Game instance (must be flushed so it has an id)
            spread: dict with "home" and "away" lines
            total: total points line
        """
        picks = [
            Pick(game_id=game.id, pick_type="spread", selection="home", line_value=spread["home"]),
            Pick(game_id=game.id, pick_type="spread", selection="away", line_value=spread["away"]),
            Pick(game_id=game.id, pick_type="total", selection="over", line_value=total),
            Pick(game_id=game.id, pick_type="total", selection="under", line_value=total),
        ]
        db.session.add_all(picks)
        return picks

    @staticmethod
    def update_lines_for_game(game, spread, total):
        """Refresh line values on an existing game's options, creating any missing"""
        lines = {
            ("spread", "home"): spread["home"],
            ("spread", "away"): spread["away"],
            ("total", "over"): total,
            ("total", "under"): total,
        }
        existing = {(p.pick_type, p.selection): p for p in game.picks.all()}

        for (pick_type, selection), line_value in lines.items():
            pick = existing.get((pick_type, selection))
            if pick:
                pick.line_value = line_value
            else:
                db.session.add(
                    Pick(
                        game_id=game.id,
                        pick_type=pick_type,
                        selection=selection,
                        line_value=line_value,
                    )
                )

    @staticmethod
    def board_for_game(game):
        """Pick options for a game with display text and popularity"""
        from perfect_slate.utils.lines import pick_display_text, popularity_split

        picks = {(p.pick_type, p.selection): p for p in game.picks.all()}
        board = []

        for pick_type, (first, second) in SELECTIONS.items():
            first_pick = picks.get((pick_type, first))
            second_pick = picks.get((pick_type, second))
            first_pct, second_pct = popularity_split(
                first_pick.times_selected if first_pick else 0,
                second_pick.times_selected if second_pick else 0,
            )
            for pick, pct in ((first_pick, first_pct), (second_pick, second_pct)):
                if pick is None:
                    continue
                data = pick.to_dict()
                data["display_text"] = pick_display_text(pick, game)
                data["percentage"] = pct
                board.append(data)

        return board

    def to_dict(self):
        """Convert pick to dictionary for API responses"""
        return {
            "id": self.id,
            "game_id": self.game_id,
            "pick_type": self.pick_type,
            "selection": self.selection,
            "line_value": self.line_value,
            "times_selected": self.times_selected,
        }
