from perfect_slate import db  # noqa: F401 - imported for model imports

from .contest import Contest
from .game import Game
from .pick import Pick
from .slate import Slate, SlateEntry
from .team import Team
from .user import User
from .user_profile import UserProfile

__all__ = [
    "Contest",
    "Game",
    "Pick",
    "Slate",
    "SlateEntry",
    "Team",
    "User",
    "UserProfile",
]
