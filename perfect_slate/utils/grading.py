"""
Grading for Perfect Slate

Grades individual picks once their game is final, rolls entry results up
into slate results, and settles a contest when every game has finished.
Lines carry the no-tie half point, so a push only happens on a raw provider
line; a push is graded as a miss.
"""

import logging

from perfect_slate import db
from perfect_slate.utils.lock_time import LOCKED
from perfect_slate.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def grade_pick(pick, game, line_value=None):
    """
    Grade a single pick option against a game's final score.

    line_value overrides the option's current line, so slate entries are
    graded on the line they were submitted at.

    Returns:
        True if the pick won, False if it lost or pushed,
        None while the game is not complete
    """
    if not game.is_completed or game.home_score is None or game.away_score is None:
        return None

    line = pick.line_value if line_value is None else line_value

    if pick.pick_type == "spread":
        if pick.selection == "home":
            return game.home_score + line > game.away_score
        return game.away_score + line > game.home_score

    total = game.total_score
    if pick.selection == "over":
        return total > line
    return total < line


def grade_slate(slate):
    """
    Recompute a slate's correct count and result from its entries.

    Token-covered games count as correct. One losing entry busts the slate;
    it is perfect once every entry is graded correct.
    """
    entries = slate.entries
    correct = sum(1 for entry in entries if entry.is_correct)
    slate.correct_count = correct + (slate.tokens_used or 0)

    if any(entry.is_correct is False for entry in entries):
        result = "busted"
    elif entries and all(entry.is_correct for entry in entries):
        result = "perfect"
    else:
        result = "pending"

    if result != slate.result:
        slate.result = result
        if result != "pending":
            slate.graded_at = get_utc_time()

    return slate.result


def grade_game_picks(game, commit=False):
    """
    Grade every slate entry on a completed game and refresh the affected slates.

    Returns:
        tuple: (entries graded, list of slates touched)
    """
    from perfect_slate.models import Slate, SlateEntry

    if not game.is_completed:
        return 0, []

    entries = SlateEntry.query.filter_by(game_id=game.id).all()
    graded = 0
    slate_ids = set()

    for entry in entries:
        is_correct = grade_pick(entry.pick, game, line_value=entry.line_value)
        if entry.is_correct != is_correct:
            entry.is_correct = is_correct
            graded += 1
        slate_ids.add(entry.slate_id)

    slates = Slate.query.filter(Slate.id.in_(slate_ids)).all() if slate_ids else []
    for slate in slates:
        grade_slate(slate)

    if commit:
        db.session.commit()

    if graded:
        logger.info(
            f"Graded {graded} entries across {len(slates)} slates for game {game.id}"
        )
    return graded, slates


def finalize_contest(contest, commit=True):
    """
    Settle a contest once all of its games are complete.

    Grades every slate, splits the prize pool evenly between perfect
    slates, folds results into player profiles and marks the contest
    completed.

    Returns:
        tuple: (success, message)
    """
    from perfect_slate.models import UserProfile

    if contest.status == "completed":
        return False, f"Contest {contest.id} is already completed"

    if not contest.all_games_completed():
        return False, f"Contest {contest.id} still has games in progress"

    for game in contest.get_games():
        grade_game_picks(game)

    slates = contest.slates.all()
    for slate in slates:
        grade_slate(slate)

    winners = [slate for slate in slates if slate.result == "perfect"]
    payout = 0.0
    if winners:
        payout = round((contest.final_prize_pool or 0.0) / len(winners), 2)

    for slate in slates:
        slate.payout = payout if slate.result == "perfect" else 0.0
        profile = UserProfile.get_or_create(slate.user)
        profile.record_result(slate)

    contest.total_winners = len(winners)
    contest.perfect_slates_count = len(winners)
    contest.status = "completed"

    if commit:
        db.session.commit()

    message = (
        f"Contest {contest.id} completed: {len(winners)} perfect slates "
        f"of {len(slates)}, payout {payout:.2f} each"
    )
    logger.info(message)
    return True, message


def refresh_contest_statuses(now=None, sport=None):
    """
    Move contests through open -> locked -> in_progress from the schedule.

    Returns:
        list of (contest, old_status, new_status) transitions
    """
    from perfect_slate.models import Contest

    now = now or get_utc_time()
    query = Contest.query.filter(Contest.status.in_(("open", "locked")))
    if sport:
        query = query.filter(Contest.sport == sport.upper())

    transitions = []
    for contest in query.all():
        old_status = contest.status
        games = contest.get_games()

        if contest.status == "open" and contest.lock_status(now=now, games=games).status == LOCKED:
            contest.status = "locked"

        if contest.status == "locked" and any(game.has_started(now) for game in games):
            contest.status = "in_progress"

        if contest.status != old_status:
            transitions.append((contest, old_status, contest.status))
            logger.info(f"Contest {contest.id} moved from {old_status} to {contest.status}")

    if transitions:
        db.session.commit()

    return transitions
