"""
Error taxonomy for Perfect Slate

Blocked slate actions are reported as ActionResult values, never raised.
Failures that cross the HTTP boundary are SlateError subclasses, which the
app turns into JSON responses.
"""

from enum import Enum


class BlockReason(str, Enum):
    AUTH_REQUIRED = "auth_required"
    ALREADY_SUBMITTED = "already_submitted"
    CONTEST_NOT_OPEN = "contest_not_open"
    CONTEST_LOCKED = "contest_locked"
    GAME_HAS_TOKEN = "game_has_token"
    GAME_UNAVAILABLE = "game_unavailable"
    UNKNOWN_GAME = "unknown_game"
    SLATE_FULL = "slate_full"
    GAME_PICK_LIMIT = "game_pick_limit"
    TOKEN_LIMIT = "token_limit"
    INSUFFICIENT_TOKENS = "insufficient_tokens"
    INVALID_INDEX = "invalid_index"
    SLATE_INCOMPLETE = "slate_incomplete"


BLOCK_MESSAGES = {
    BlockReason.AUTH_REQUIRED: "Sign up or log in to build a slate",
    BlockReason.ALREADY_SUBMITTED: "Your slate has already been submitted",
    BlockReason.CONTEST_NOT_OPEN: "This contest has not opened yet",
    BlockReason.CONTEST_LOCKED: "This contest is locked",
    BlockReason.GAME_HAS_TOKEN: "A token is covering this game",
    BlockReason.GAME_UNAVAILABLE: "This game is no longer available",
    BlockReason.UNKNOWN_GAME: "Game is not part of this contest",
    BlockReason.SLATE_FULL: "Your slate is full",
    BlockReason.GAME_PICK_LIMIT: "You already have two picks on this game",
    BlockReason.TOKEN_LIMIT: "Token limit reached for this slate",
    BlockReason.INSUFFICIENT_TOKENS: "You don't have enough tokens",
    BlockReason.INVALID_INDEX: "No pick at that position",
    BlockReason.SLATE_INCOMPLETE: "Your slate needs 10 picks or tokens before submitting",
}


class ActionResult:
    """Outcome of a slate builder action"""

    __slots__ = ("allowed", "action", "reason")

    def __init__(self, allowed, action, reason=None):
        self.allowed = allowed
        self.action = action
        self.reason = reason

    @classmethod
    def ok(cls, action):
        return cls(True, action)

    @classmethod
    def blocked(cls, reason):
        return cls(False, "blocked", reason)

    @property
    def message(self):
        if self.reason is None:
            return None
        return BLOCK_MESSAGES.get(self.reason, self.reason.value)

    def __bool__(self):
        return self.allowed

    def __eq__(self, other):
        if not isinstance(other, ActionResult):
            return NotImplemented
        return (self.allowed, self.action, self.reason) == (
            other.allowed,
            other.action,
            other.reason,
        )

    def __repr__(self):
        if self.allowed:
            return f"<ActionResult {self.action}>"
        return f"<ActionResult blocked: {self.reason.value}>"

    def to_dict(self):
        return {
            "allowed": self.allowed,
            "action": self.action,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }


class SlateError(Exception):
    """Base class for errors returned to API clients"""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"success": False, "error": self.message}


class SubmissionRejected(SlateError):
    """The server refused a slate submission"""

    def __init__(self, reason, message=None, status_code=None):
        self.reason = reason
        super().__init__(message or reason.replace("_", " ").capitalize(), status_code)

    def to_dict(self):
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class ContestNotFound(SlateError):
    status_code = 404

    def __init__(self, message="No active contest found"):
        super().__init__(message)


class TransientFetchFailure(SlateError):
    """Odds provider could not be reached after retries"""

    status_code = 503
