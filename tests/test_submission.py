from datetime import timedelta

import pytest

from conftest import pick_ids, ten_pick_ids
from perfect_slate import db
from perfect_slate.errors import ContestNotFound, SubmissionRejected
from perfect_slate.models import Slate, UserProfile
from perfect_slate.services.submission import submit_slate
from perfect_slate.utils.timezone_utils import get_utc_time


def _payload(contest, picks, tokens=0):
    return {"contestId": contest.id, "picks": picks, "tokensUsed": tokens}


def _reason(user, payload):
    with pytest.raises(SubmissionRejected) as excinfo:
        submit_slate(user, payload)
    return excinfo.value.reason


def test_submit_valid_slate(ctx, make_user, make_contest):
    user = make_user(tokens=0)
    contest = make_contest()
    picks = ten_pick_ids(contest)

    slate = submit_slate(user, _payload(contest, picks))

    assert slate.id is not None
    assert sorted(slate.pick_ids) == sorted(picks)
    assert slate.result == "pending"
    assert contest.total_entries == 1
    assert Slate.get_for_user(user.id, contest.id) is not None

    game = contest.get_games()[0]
    assert game.get_pick("spread", "home").times_selected == 1


def test_tokens_are_debited(ctx, make_user, make_contest):
    user = make_user(tokens=3)
    contest = make_contest()

    slate = submit_slate(user, _payload(contest, ten_pick_ids(contest, tokens=3), tokens=3))

    profile = UserProfile.get_or_create(user)
    assert slate.tokens_used == 3
    assert profile.token_balance == 0
    assert profile.lifetime_tokens_used == 3
    assert contest.tokens_used_count == 3


def test_fifth_slate_earns_a_token(ctx, make_user, make_contest):
    user = make_user(tokens=0)
    profile = UserProfile.get_or_create(user)
    profile.slates_toward_next_token = 4
    db.session.commit()

    contest = make_contest()
    submit_slate(user, _payload(contest, ten_pick_ids(contest)))

    assert profile.token_balance == 1
    assert profile.slates_toward_next_token == 0
    assert profile.total_slates_submitted == 1


def test_second_submission_conflicts(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest()
    submit_slate(user, _payload(contest, ten_pick_ids(contest)))

    with pytest.raises(SubmissionRejected) as excinfo:
        submit_slate(user, _payload(contest, ten_pick_ids(contest)))

    assert excinfo.value.reason == "already_submitted"
    assert excinfo.value.status_code == 409


def test_wrong_size_is_rejected(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest()

    assert _reason(user, _payload(contest, ten_pick_ids(contest)[:9])) == "slate_incomplete"
    assert Slate.query.count() == 0


def test_too_many_tokens(ctx, make_user, make_contest):
    user = make_user(tokens=10)
    contest = make_contest()

    payload = _payload(contest, ten_pick_ids(contest, tokens=6), tokens=6)
    assert _reason(user, payload) == "token_limit"


def test_insufficient_tokens(ctx, make_user, make_contest):
    user = make_user(tokens=1)
    contest = make_contest()

    payload = _payload(contest, ten_pick_ids(contest, tokens=2), tokens=2)
    assert _reason(user, payload) == "insufficient_tokens"
    assert UserProfile.get_or_create(user).token_balance == 1


def test_duplicate_pick(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest()
    picks = ten_pick_ids(contest)
    picks[-1] = picks[0]

    assert _reason(user, _payload(contest, picks)) == "duplicate_pick"


def test_both_sides_of_a_market(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest()
    games = contest.get_games()
    first = pick_ids(games[0])
    picks = [first[("spread", "home")], first[("spread", "away")]] + [
        pick_ids(game)[("spread", "home")] for game in games[1:9]
    ]

    assert _reason(user, _payload(contest, picks)) == "conflicting_picks"


def test_pick_from_another_contest(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest(week_number=1)
    other = make_contest(week_number=2)
    picks = ten_pick_ids(contest)[:9] + [ten_pick_ids(other)[0]]

    assert _reason(user, _payload(contest, picks)) == "unknown_game"


def test_started_game_is_rejected(ctx, make_user, make_contest):
    user = make_user()
    now = get_utc_time()
    # First game started an hour ago, the rest are still ahead
    contest = make_contest(first_start=now - timedelta(hours=1), game_count=14)
    games = contest.get_games()
    picks = [pick_ids(game)[("spread", "home")] for game in games[:10]]

    assert _reason(user, _payload(contest, picks)) == "game_unavailable"


def test_locked_contest(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest()
    contest.status = "locked"
    db.session.commit()

    assert _reason(user, _payload(contest, ten_pick_ids(contest))) == "contest_locked"


def test_schedule_lock(ctx, make_user, make_contest):
    user = make_user()
    now = get_utc_time()
    contest = make_contest(first_start=now - timedelta(hours=8), game_count=12)

    assert _reason(user, _payload(contest, ten_pick_ids(contest))) == "contest_locked"


def test_pre_contest(ctx, make_user, make_contest):
    user = make_user()
    contest = make_contest(open_time=get_utc_time() + timedelta(hours=1))

    assert _reason(user, _payload(contest, ten_pick_ids(contest))) == "contest_not_open"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"contestId": "1", "picks": [], "tokensUsed": 0},
        {"contestId": 1, "picks": "1,2,3", "tokensUsed": 0},
        {"contestId": 1, "picks": [1, 2], "tokensUsed": "2"},
        {"contestId": True, "picks": [], "tokensUsed": 0},
    ],
)
def test_malformed_payload(ctx, make_user, payload):
    user = make_user()

    assert _reason(user, payload) == "invalid_request"


def test_missing_contest(ctx, make_user):
    user = make_user()

    with pytest.raises(ContestNotFound):
        submit_slate(user, {"contestId": 999, "picks": [], "tokensUsed": 0})
