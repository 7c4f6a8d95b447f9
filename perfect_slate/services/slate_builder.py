"""
Slate Builder

Holds a user's in-progress slate (manual picks plus token-covered games) and
applies the slate rules to every change. Each operation returns an
ActionResult; a blocked action leaves the state untouched.

The builder has no database access. Callers pass in the contest status, the
contest's games (for availability checks) and, when known, the user's token
balance. The draft state round-trips through ``to_dict``/``from_dict`` so it
can be kept in the Flask session between requests.
"""

import logging
from collections import namedtuple

from perfect_slate.errors import ActionResult, BlockReason
from perfect_slate.utils.lock_time import ACTIVE, LOCKED, PRE_CONTEST

logger = logging.getLogger(__name__)

SLATE_SIZE = 10
MAX_TOKENS_PER_SLATE = 5
MAX_PICKS_PER_GAME = 2

# Flask session key holding drafts per sport
DRAFT_SESSION_KEY = "slates"

UserPick = namedtuple(
    "UserPick", ["game_id", "pick_id", "pick_type", "selection", "display_text"]
)


class SlateState:
    """Draft slate: ordered picks, token games and the submitted flag"""

    def __init__(self, selected_picks=None, token_games=None, submitted=False):
        self.selected_picks = list(selected_picks or [])
        self.token_games = set(token_games or [])
        self.submitted = submitted

    def __repr__(self):
        return (
            f"<SlateState picks={len(self.selected_picks)} "
            f"tokens={len(self.token_games)} submitted={self.submitted}>"
        )

    def to_dict(self):
        return {
            "selected_picks": [pick._asdict() for pick in self.selected_picks],
            "token_games": sorted(self.token_games),
            "submitted": self.submitted,
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()
        return cls(
            selected_picks=[UserPick(**pick) for pick in data.get("selected_picks", [])],
            token_games=data.get("token_games", []),
            submitted=bool(data.get("submitted", False)),
        )


class SlateBuilder:
    """Applies slate rules to a SlateState"""

    def __init__(
        self,
        state=None,
        contest_status=LOCKED,
        games=None,
        authenticated=True,
        token_balance=None,
        slate_size=SLATE_SIZE,
        max_tokens=MAX_TOKENS_PER_SLATE,
        max_picks_per_game=MAX_PICKS_PER_GAME,
    ):
        """
        Args:
            state: SlateState to mutate, a new empty one if omitted
            contest_status: "pre-contest", "active" or "locked"
            games: optional mapping of game id to game; when given, picks
                and tokens are only allowed on known games that have not started
            authenticated: whether a user is signed in
            token_balance: tokens the user owns, None when unknown
        """
        self.state = state if state is not None else SlateState()
        self.contest_status = contest_status
        self.games = games
        self.authenticated = authenticated
        self.token_balance = token_balance
        self.slate_size = slate_size
        self.max_tokens = max_tokens
        self.max_picks_per_game = max_picks_per_game

    @classmethod
    def from_config(cls, config, **kwargs):
        """Builder using the slate limits from a Flask config"""
        kwargs.setdefault("slate_size", config.get("SLATE_SIZE", SLATE_SIZE))
        kwargs.setdefault(
            "max_tokens", config.get("MAX_TOKENS_PER_SLATE", MAX_TOKENS_PER_SLATE)
        )
        kwargs.setdefault(
            "max_picks_per_game", config.get("MAX_PICKS_PER_GAME", MAX_PICKS_PER_GAME)
        )
        return cls(**kwargs)

    # State queries

    @property
    def selected_picks(self):
        return self.state.selected_picks

    @property
    def token_games(self):
        return self.state.token_games

    @property
    def submitted(self):
        return self.state.submitted

    def units(self):
        """Picks plus token-covered games"""
        return len(self.state.selected_picks) + len(self.state.token_games)

    def is_complete(self):
        return self.units() == self.slate_size

    def picks_for_game(self, game_id):
        return [p for p in self.state.selected_picks if p.game_id == game_id]

    # Guards

    def _contest_block(self):
        if self.contest_status == ACTIVE:
            return None
        if self.contest_status == PRE_CONTEST:
            return ActionResult.blocked(BlockReason.CONTEST_NOT_OPEN)
        return ActionResult.blocked(BlockReason.CONTEST_LOCKED)

    def _game_block(self, game_id, now=None):
        if self.games is None:
            return None
        game = self.games.get(game_id)
        if game is None:
            return ActionResult.blocked(BlockReason.UNKNOWN_GAME)
        if not game.is_available(now):
            return ActionResult.blocked(BlockReason.GAME_UNAVAILABLE)
        return None

    # Operations

    def select_pick(
        self, game_id, pick_type, selection, display_text="", pick_id=None, now=None
    ):
        """
        Toggle a pick on a game.

        The exact same pick again deselects it, the other side of the same
        market replaces it in place, anything else is appended while the
        slate and the game have room.
        """
        if not self.authenticated:
            return ActionResult.blocked(BlockReason.AUTH_REQUIRED)
        if self.state.submitted:
            return ActionResult.blocked(BlockReason.ALREADY_SUBMITTED)
        if game_id in self.state.token_games:
            return ActionResult.blocked(BlockReason.GAME_HAS_TOKEN)

        blocked = self._contest_block() or self._game_block(game_id, now)
        if blocked:
            return blocked

        picks = self.state.selected_picks
        new_pick = UserPick(game_id, pick_id, pick_type, selection, display_text)

        for index, existing in enumerate(picks):
            if existing.game_id != game_id or existing.pick_type != pick_type:
                continue
            if existing.selection == selection:
                del picks[index]
                return ActionResult.ok("deselected")
            picks[index] = new_pick
            return ActionResult.ok("switched")

        if self.units() >= self.slate_size:
            return ActionResult.blocked(BlockReason.SLATE_FULL)
        if len(self.picks_for_game(game_id)) >= self.max_picks_per_game:
            return ActionResult.blocked(BlockReason.GAME_PICK_LIMIT)

        picks.append(new_pick)
        return ActionResult.ok("selected")

    def toggle_token(self, game_id, now=None):
        """Cover a game with a token (clearing its picks), or give the token back"""
        if not self.authenticated:
            return ActionResult.blocked(BlockReason.AUTH_REQUIRED)
        if self.state.submitted:
            return ActionResult.blocked(BlockReason.ALREADY_SUBMITTED)

        blocked = self._contest_block() or self._game_block(game_id, now)
        if blocked:
            return blocked

        tokens = self.state.token_games
        if game_id in tokens:
            tokens.discard(game_id)
            return ActionResult.ok("token_removed")

        if len(tokens) >= self.max_tokens:
            return ActionResult.blocked(BlockReason.TOKEN_LIMIT)
        if self.units() >= self.slate_size:
            return ActionResult.blocked(BlockReason.SLATE_FULL)
        if self.token_balance is not None and len(tokens) >= self.token_balance:
            return ActionResult.blocked(BlockReason.INSUFFICIENT_TOKENS)

        self.state.selected_picks = [
            p for p in self.state.selected_picks if p.game_id != game_id
        ]
        tokens.add(game_id)
        return ActionResult.ok("token_applied")

    def remove_pick(self, index, now=None):
        """Remove the index-th pick from the review list"""
        if self.state.submitted:
            return ActionResult.blocked(BlockReason.ALREADY_SUBMITTED)

        blocked = self._contest_block()
        if blocked:
            return blocked

        if not 0 <= index < len(self.state.selected_picks):
            return ActionResult.blocked(BlockReason.INVALID_INDEX)

        blocked = self._game_block(self.state.selected_picks[index].game_id, now)
        if blocked:
            return blocked

        del self.state.selected_picks[index]
        return ActionResult.ok("removed")

    def reset(self):
        """Discard the draft, e.g. on sign-out"""
        self.state = SlateState()

    def check_submittable(self):
        """Whether the draft may be sent to the submission endpoint"""
        if not self.authenticated:
            return ActionResult.blocked(BlockReason.AUTH_REQUIRED)
        if self.state.submitted:
            return ActionResult.blocked(BlockReason.ALREADY_SUBMITTED)

        blocked = self._contest_block()
        if blocked:
            return blocked

        if not self.is_complete():
            return ActionResult.blocked(BlockReason.SLATE_INCOMPLETE)
        if self.token_balance is not None and len(self.state.token_games) > self.token_balance:
            return ActionResult.blocked(BlockReason.INSUFFICIENT_TOKENS)
        return ActionResult.ok("submittable")

    def build_submission(self, contest_id):
        """Request body for the submission endpoint"""
        return {
            "contestId": contest_id,
            "picks": [p.pick_id for p in self.state.selected_picks],
            "tokensUsed": len(self.state.token_games),
        }

    def mark_submitted(self):
        """Only called once the server confirmed the submission"""
        self.state.submitted = True
        logger.info(
            f"Slate submitted with {len(self.state.selected_picks)} picks "
            f"and {len(self.state.token_games)} tokens"
        )

    def to_dict(self):
        data = self.state.to_dict()
        data.update(
            {
                "units": self.units(),
                "slate_size": self.slate_size,
                "tokens_used": len(self.state.token_games),
                "max_tokens": self.max_tokens,
                "token_balance": self.token_balance,
                "is_complete": self.is_complete(),
                "contest_status": self.contest_status,
            }
        )
        return data
