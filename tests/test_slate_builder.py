import random

import pytest

from perfect_slate.errors import ActionResult, BlockReason
from perfect_slate.services.slate_builder import SlateBuilder, SlateState, UserPick
from perfect_slate.utils.lock_time import ACTIVE, LOCKED, PRE_CONTEST


class FakeGame:
    def __init__(self, available=True):
        self.available = available

    def is_available(self, now=None):
        return self.available


@pytest.fixture
def games():
    return {game_id: FakeGame() for game_id in range(1, 13)}


@pytest.fixture
def builder(games):
    return SlateBuilder(contest_status=ACTIVE, games=games, token_balance=5)


def _pick_id(game_id, pick_type, selection):
    offsets = {"home": 0, "away": 1, "over": 2, "under": 3}
    return game_id * 10 + offsets[selection]


def _select(builder, game_id, pick_type="spread", selection="home"):
    return builder.select_pick(
        game_id,
        pick_type,
        selection,
        display_text=f"{selection} {game_id}",
        pick_id=_pick_id(game_id, pick_type, selection),
    )


def _assert_invariants(builder):
    assert builder.units() <= builder.slate_size
    assert len(builder.token_games) <= builder.max_tokens
    for game_id in {p.game_id for p in builder.selected_picks}:
        assert len(builder.picks_for_game(game_id)) <= builder.max_picks_per_game
        assert game_id not in builder.token_games
    markets = [(p.game_id, p.pick_type) for p in builder.selected_picks]
    assert len(markets) == len(set(markets))


class TestSelectPick:
    def test_select_appends(self, builder):
        result = _select(builder, 1)

        assert result == ActionResult.ok("selected")
        assert builder.selected_picks == [UserPick(1, 10, "spread", "home", "home 1")]

    def test_switching_sides_replaces_in_place(self, builder):
        _select(builder, 1, selection="away")
        _select(builder, 2)

        result = _select(builder, 1, selection="home")

        assert result.action == "switched"
        assert [(p.game_id, p.selection) for p in builder.selected_picks] == [
            (1, "home"),
            (2, "home"),
        ]

    def test_same_pick_twice_is_its_own_inverse(self, builder):
        _select(builder, 3, "total", "over")
        before = list(builder.selected_picks)

        assert _select(builder, 1).action == "selected"
        assert _select(builder, 1).action == "deselected"
        assert builder.selected_picks == before

    def test_two_markets_per_game(self, builder):
        assert _select(builder, 1, "spread", "home")
        assert _select(builder, 1, "total", "under")

        assert len(builder.picks_for_game(1)) == 2

    def test_eleventh_pick_is_blocked(self, builder):
        for game_id in range(1, 11):
            assert _select(builder, game_id)

        result = _select(builder, 11)

        assert result == ActionResult.blocked(BlockReason.SLATE_FULL)
        assert builder.units() == 10

    def test_switch_allowed_on_full_slate(self, builder):
        for game_id in range(1, 11):
            _select(builder, game_id)

        assert _select(builder, 5, selection="away").action == "switched"
        assert builder.units() == 10

    def test_requires_authentication(self, games):
        builder = SlateBuilder(contest_status=ACTIVE, games=games, authenticated=False)

        result = _select(builder, 1)

        assert result.reason == BlockReason.AUTH_REQUIRED
        assert builder.selected_picks == []

    def test_blocked_after_submission(self, builder):
        builder.mark_submitted()

        assert _select(builder, 1).reason == BlockReason.ALREADY_SUBMITTED

    @pytest.mark.parametrize(
        "status, reason",
        [
            (PRE_CONTEST, BlockReason.CONTEST_NOT_OPEN),
            (LOCKED, BlockReason.CONTEST_LOCKED),
        ],
    )
    def test_blocked_unless_active(self, games, status, reason):
        builder = SlateBuilder(contest_status=status, games=games)

        assert _select(builder, 1).reason == reason
        assert builder.units() == 0

    def test_started_game_is_blocked(self, builder, games):
        games[4].available = False

        assert _select(builder, 4).reason == BlockReason.GAME_UNAVAILABLE

    def test_unknown_game_is_blocked(self, builder):
        assert _select(builder, 99).reason == BlockReason.UNKNOWN_GAME

    def test_without_game_map_any_game_is_allowed(self):
        builder = SlateBuilder(contest_status=ACTIVE)

        assert _select(builder, 99)

    def test_blocked_result_has_message(self, builder):
        builder.mark_submitted()
        data = _select(builder, 1).to_dict()

        assert data == {
            "allowed": False,
            "action": "blocked",
            "reason": "already_submitted",
            "message": "Your slate has already been submitted",
        }


class TestTokens:
    def test_token_then_pick_on_same_game_is_rejected(self, builder):
        assert builder.toggle_token(1).action == "token_applied"

        result = _select(builder, 1)

        assert result.reason == BlockReason.GAME_HAS_TOKEN
        assert builder.token_games == {1}
        assert builder.picks_for_game(1) == []

    def test_token_clears_existing_picks(self, builder):
        _select(builder, 1, "spread", "home")
        _select(builder, 1, "total", "over")
        _select(builder, 2)

        builder.toggle_token(1)

        assert builder.picks_for_game(1) == []
        assert len(builder.selected_picks) == 1
        assert builder.units() == 2

    def test_toggle_twice_returns_token(self, builder):
        builder.toggle_token(1)

        assert builder.toggle_token(1).action == "token_removed"
        assert builder.token_games == set()

    def test_at_most_five_tokens(self, builder):
        for game_id in range(1, 6):
            assert builder.toggle_token(game_id)

        assert builder.toggle_token(6).reason == BlockReason.TOKEN_LIMIT

    def test_no_token_on_full_slate(self, builder):
        for game_id in range(1, 11):
            _select(builder, game_id)

        assert builder.toggle_token(11).reason == BlockReason.SLATE_FULL

    def test_balance_limits_tokens(self, games):
        builder = SlateBuilder(contest_status=ACTIVE, games=games, token_balance=1)

        assert builder.toggle_token(1)
        assert builder.toggle_token(2).reason == BlockReason.INSUFFICIENT_TOKENS

    def test_unknown_balance_does_not_limit(self, games):
        builder = SlateBuilder(contest_status=ACTIVE, games=games)

        for game_id in range(1, 6):
            assert builder.toggle_token(game_id)

    def test_locked_contest_blocks_tokens(self, games):
        builder = SlateBuilder(contest_status=LOCKED, games=games)

        assert builder.toggle_token(1).reason == BlockReason.CONTEST_LOCKED

    def test_started_game_blocks_tokens(self, builder, games):
        games[2].available = False

        assert builder.toggle_token(2).reason == BlockReason.GAME_UNAVAILABLE


class TestRemovePick:
    def test_remove_by_index(self, builder):
        _select(builder, 1)
        _select(builder, 2)

        assert builder.remove_pick(0).action == "removed"
        assert [p.game_id for p in builder.selected_picks] == [2]

    def test_invalid_index(self, builder):
        _select(builder, 1)

        assert builder.remove_pick(1).reason == BlockReason.INVALID_INDEX
        assert builder.remove_pick(-1).reason == BlockReason.INVALID_INDEX

    def test_locked_contest_keeps_picks(self, builder):
        _select(builder, 1)
        builder.contest_status = LOCKED

        assert builder.remove_pick(0).reason == BlockReason.CONTEST_LOCKED
        assert len(builder.selected_picks) == 1

    def test_started_game_keeps_pick(self, builder, games):
        _select(builder, 1)
        games[1].available = False

        assert builder.remove_pick(0).reason == BlockReason.GAME_UNAVAILABLE


class TestSubmission:
    def test_ten_picks_build_submission(self, builder):
        for game_id in range(1, 11):
            _select(builder, game_id)

        assert builder.check_submittable().action == "submittable"
        submission = builder.build_submission(42)

        assert submission == {
            "contestId": 42,
            "picks": [_pick_id(g, "spread", "home") for g in range(1, 11)],
            "tokensUsed": 0,
        }
        assert _select(builder, 11).reason == BlockReason.SLATE_FULL

    def test_tokens_count_toward_slate(self, builder):
        for game_id in range(1, 4):
            builder.toggle_token(game_id)
        for game_id in range(4, 11):
            _select(builder, game_id)

        submission = builder.build_submission(7)

        assert len(submission["picks"]) == 7
        assert submission["tokensUsed"] == 3
        assert builder.check_submittable()

    def test_incomplete_slate_is_not_submittable(self, builder):
        _select(builder, 1)

        assert builder.check_submittable().reason == BlockReason.SLATE_INCOMPLETE

    def test_submitted_state_is_final(self, builder):
        for game_id in range(1, 11):
            _select(builder, game_id)
        builder.mark_submitted()

        assert builder.check_submittable().reason == BlockReason.ALREADY_SUBMITTED
        assert builder.toggle_token(11).reason == BlockReason.ALREADY_SUBMITTED
        assert builder.remove_pick(0).reason == BlockReason.ALREADY_SUBMITTED

    def test_reset_clears_everything(self, builder):
        _select(builder, 1)
        builder.toggle_token(2)
        builder.mark_submitted()

        builder.reset()

        assert builder.units() == 0
        assert not builder.submitted


def test_state_round_trips_through_dict(builder):
    _select(builder, 1, "total", "under")
    builder.toggle_token(3)

    restored = SlateState.from_dict(builder.state.to_dict())

    assert restored.selected_picks == builder.selected_picks
    assert restored.token_games == {3}
    assert restored.submitted is False


def test_from_config_reads_limits(games):
    config = {"SLATE_SIZE": 6, "MAX_TOKENS_PER_SLATE": 2, "MAX_PICKS_PER_GAME": 1}
    builder = SlateBuilder.from_config(config, contest_status=ACTIVE, games=games)

    assert (builder.slate_size, builder.max_tokens, builder.max_picks_per_game) == (6, 2, 1)
    assert _select(builder, 1, "spread", "home")
    assert _select(builder, 1, "total", "over").reason == BlockReason.GAME_PICK_LIMIT


@pytest.mark.parametrize("seed", range(25))
def test_random_sequences_keep_invariants(games, seed):
    rng = random.Random(seed)
    builder = SlateBuilder(contest_status=ACTIVE, games=games, token_balance=5)
    markets = [("spread", "home"), ("spread", "away"), ("total", "over"), ("total", "under")]

    for _ in range(200):
        game_id = rng.randint(1, 12)
        roll = rng.random()
        if roll < 0.7:
            pick_type, selection = rng.choice(markets)
            _select(builder, game_id, pick_type, selection)
        elif roll < 0.9:
            builder.toggle_token(game_id)
        elif builder.selected_picks:
            builder.remove_pick(rng.randrange(len(builder.selected_picks)))

        _assert_invariants(builder)
