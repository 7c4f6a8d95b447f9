"""
Slate submission

The client builds its slate with the same rules, but nothing it sends is
trusted: every limit is checked again here against the database before the
slate is written.
"""

import logging
from collections import Counter

from flask import current_app

from perfect_slate import db
from perfect_slate.errors import BlockReason, ContestNotFound, SubmissionRejected
from perfect_slate.models import Contest, Pick, Slate, SlateEntry, UserProfile
from perfect_slate.utils.lock_time import ACTIVE, PRE_CONTEST
from perfect_slate.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def _parse_payload(payload):
    """Pull contestId, picks and tokensUsed out of a request body"""
    if not isinstance(payload, dict):
        raise SubmissionRejected("invalid_request", "Request body must be a JSON object")

    contest_id = payload.get("contestId")
    pick_ids = payload.get("picks")
    tokens_used = payload.get("tokensUsed", 0)

    if not isinstance(contest_id, int) or isinstance(contest_id, bool):
        raise SubmissionRejected("invalid_request", "contestId must be an integer")
    if not isinstance(pick_ids, list) or not all(
        isinstance(p, int) and not isinstance(p, bool) for p in pick_ids
    ):
        raise SubmissionRejected("invalid_request", "picks must be a list of pick ids")
    if not isinstance(tokens_used, int) or isinstance(tokens_used, bool):
        raise SubmissionRejected("invalid_request", "tokensUsed must be an integer")

    return contest_id, pick_ids, tokens_used


def validate_submission(user, contest, pick_ids, tokens_used, now=None):
    """
    Check a submission against every slate rule.

    Returns:
        tuple: (profile, picks) when valid

    Raises:
        SubmissionRejected: with the reason of the first failed rule
    """
    config = current_app.config
    slate_size = config.get("SLATE_SIZE", 10)
    max_tokens = config.get("MAX_TOKENS_PER_SLATE", 5)
    max_per_game = config.get("MAX_PICKS_PER_GAME", 2)
    now = now or get_utc_time()

    if contest.status != "open":
        raise SubmissionRejected(BlockReason.CONTEST_LOCKED.value, "This contest is locked")

    games = contest.get_games()
    lock_status = contest.lock_status(now=now, games=games)
    if lock_status.status == PRE_CONTEST:
        raise SubmissionRejected(
            BlockReason.CONTEST_NOT_OPEN.value, "This contest has not opened yet"
        )
    if lock_status.status != ACTIVE:
        raise SubmissionRejected(BlockReason.CONTEST_LOCKED.value, "This contest is locked")

    if Slate.get_for_user(user.id, contest.id):
        raise SubmissionRejected(
            BlockReason.ALREADY_SUBMITTED.value,
            "You have already submitted a slate for this contest",
            status_code=409,
        )

    if not 0 <= tokens_used <= max_tokens:
        raise SubmissionRejected(
            BlockReason.TOKEN_LIMIT.value, f"You can use at most {max_tokens} tokens"
        )
    if len(pick_ids) + tokens_used != slate_size:
        raise SubmissionRejected(
            BlockReason.SLATE_INCOMPLETE.value,
            f"A slate needs exactly {slate_size} picks and tokens",
        )
    if len(set(pick_ids)) != len(pick_ids):
        raise SubmissionRejected("duplicate_pick", "The same pick was submitted twice")

    games_by_id = {game.id: game for game in games}
    picks = Pick.query.filter(Pick.id.in_(pick_ids)).all() if pick_ids else []
    if len(picks) != len(pick_ids) or any(p.game_id not in games_by_id for p in picks):
        raise SubmissionRejected(
            BlockReason.UNKNOWN_GAME.value, "One or more picks are not part of this contest"
        )

    for pick in picks:
        if not games_by_id[pick.game_id].is_available(now):
            raise SubmissionRejected(
                BlockReason.GAME_UNAVAILABLE.value,
                f"{games_by_id[pick.game_id].away_team} @ {games_by_id[pick.game_id].home_team} has already started",
            )

    per_market = Counter((p.game_id, p.pick_type) for p in picks)
    if any(count > 1 for count in per_market.values()):
        raise SubmissionRejected(
            "conflicting_picks", "Only one side of each spread or total may be picked"
        )

    per_game = Counter(p.game_id for p in picks)
    if any(count > max_per_game for count in per_game.values()):
        raise SubmissionRejected(
            BlockReason.GAME_PICK_LIMIT.value,
            f"At most {max_per_game} picks are allowed per game",
        )

    profile = UserProfile.get_or_create(user)
    if tokens_used > profile.token_balance:
        raise SubmissionRejected(
            BlockReason.INSUFFICIENT_TOKENS.value, "You don't have enough tokens"
        )

    return profile, picks


def submit_slate(user, payload, now=None):
    """
    Validate and store a slate in one transaction.

    Returns:
        Slate: the created slate

    Raises:
        SubmissionRejected, ContestNotFound
    """
    contest_id, pick_ids, tokens_used = _parse_payload(payload)

    contest = db.session.get(Contest, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")

    try:
        profile, picks = validate_submission(user, contest, pick_ids, tokens_used, now=now)

        slate = Slate(
            user_id=user.id,
            contest_id=contest.id,
            tokens_used=tokens_used,
            correct_count=0,
            result="pending",
            payout=0.0,
        )
        db.session.add(slate)
        db.session.flush()

        for pick in picks:
            db.session.add(
                SlateEntry(
                    slate_id=slate.id,
                    pick_id=pick.id,
                    game_id=pick.game_id,
                    line_value=pick.line_value,
                )
            )
            pick.times_selected = (pick.times_selected or 0) + 1

        contest.total_entries = (contest.total_entries or 0) + 1
        contest.tokens_used_count = (contest.tokens_used_count or 0) + tokens_used

        tokens_earned = profile.record_submission(tokens_used)
        db.session.commit()

    except SubmissionRejected as e:
        db.session.rollback()
        logger.info(f"Rejected slate from user {user.id} for contest {contest_id}: {e.reason}")
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error saving slate for user {user.id}: {e}", exc_info=True)
        raise

    logger.info(
        f"User {user.id} submitted slate {slate.id} for contest {contest.id} "
        f"({len(picks)} picks, {tokens_used} tokens, earned {tokens_earned})"
    )
    return slate
