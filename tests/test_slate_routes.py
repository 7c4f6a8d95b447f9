from types import SimpleNamespace

import pytest

from conftest import pick_ids
from perfect_slate import db
from perfect_slate.models import Game, Slate


@pytest.fixture
def board(app, make_user, make_contest):
    with app.app_context():
        contest = make_contest()
        user = make_user("alice", tokens=2)
        games = contest.get_games()
        return SimpleNamespace(
            contest_id=contest.id,
            user_id=user.id,
            game_ids=[game.id for game in games],
            picks={game.id: pick_ids(game) for game in games},
        )


def _select(client, game_id, pick_type="spread", selection="home"):
    return client.post(
        "/slate/mlb/picks",
        json={"game_id": game_id, "pick_type": pick_type, "selection": selection},
    )


def test_view_slate_anonymous(client, board):
    response = client.get("/slate/mlb")

    assert response.status_code == 200
    data = response.get_json()
    assert data["contest_id"] == board.contest_id
    assert data["lock_status"]["status"] == "active"
    assert data["slate"]["units"] == 0
    assert data["slate"]["token_balance"] is None


def test_anonymous_pick_asks_for_sign_in(client, board):
    data = _select(client, board.game_ids[0]).get_json()

    assert data["success"] is False
    assert data["result"]["reason"] == "auth_required"


def test_select_pick_uses_database_pick(client, board, login):
    login()
    game_id = board.game_ids[0]

    data = _select(client, game_id).get_json()

    assert data["success"] is True
    assert data["result"]["action"] == "selected"
    pick = data["slate"]["selected_picks"][0]
    assert pick["pick_id"] == board.picks[game_id][("spread", "home")]
    assert pick["display_text"] == "NEW -1.5"
    assert data["slate"]["token_balance"] == 2


def test_client_pick_id_and_label_are_ignored(client, board, login):
    login()
    game_id, other_game_id = board.game_ids[:2]

    data = client.post(
        "/slate/mlb/picks",
        json={
            "game_id": game_id,
            "pick_type": "spread",
            "selection": "home",
            "pick_id": board.picks[other_game_id][("spread", "away")],
            "display_text": "Anything +99.5",
        },
    ).get_json()

    pick = data["slate"]["selected_picks"][0]
    assert pick["pick_id"] == board.picks[game_id][("spread", "home")]
    assert pick["display_text"] == "NEW -1.5"


def test_draft_survives_between_requests(client, board, login):
    login()
    _select(client, board.game_ids[0])
    _select(client, board.game_ids[0], selection="away")

    data = client.get("/slate/mlb").get_json()

    assert [p["selection"] for p in data["slate"]["selected_picks"]] == ["away"]


def test_invalid_selection_for_market(client, board, login):
    login()

    response = _select(client, board.game_ids[0], "spread", "over")

    assert response.status_code == 400
    assert "selection" in response.get_json()["errors"]


def test_unknown_game(client, board, login):
    login()

    data = _select(client, 99999).get_json()

    assert data["result"]["reason"] == "unknown_game"


def test_token_and_remove(client, board, login):
    login()
    first, second = board.game_ids[:2]
    _select(client, first)
    _select(client, second)

    data = client.post(f"/slate/mlb/tokens/{first}").get_json()
    assert data["result"]["action"] == "token_applied"
    assert data["slate"]["token_games"] == [first]
    assert len(data["slate"]["selected_picks"]) == 1

    data = client.delete("/slate/mlb/picks/0").get_json()
    assert data["result"]["action"] == "removed"
    assert data["slate"]["selected_picks"] == []

    data = client.delete("/slate/mlb/picks/0").get_json()
    assert data["result"]["reason"] == "invalid_index"


def test_token_balance_limits_tokens(client, board, login):
    login()
    for game_id in board.game_ids[:2]:
        assert client.post(f"/slate/mlb/tokens/{game_id}").get_json()["success"]

    data = client.post(f"/slate/mlb/tokens/{board.game_ids[2]}").get_json()

    assert data["result"]["reason"] == "insufficient_tokens"


def test_reset(client, board, login):
    login()
    _select(client, board.game_ids[0])

    data = client.post("/slate/mlb/reset").get_json()

    assert data["slate"]["units"] == 0


def test_submit_incomplete_slate(client, board, login):
    login()
    _select(client, board.game_ids[0])

    data = client.post("/slate/mlb/submit").get_json()

    assert data["success"] is False
    assert data["result"]["reason"] == "slate_incomplete"


def test_submit_full_slate(app, client, board, login):
    login()
    client.post(f"/slate/mlb/tokens/{board.game_ids[0]}")
    for game_id in board.game_ids[1:10]:
        assert _select(client, game_id).get_json()["success"]

    response = client.post("/slate/mlb/submit")

    assert response.status_code == 201
    data = response.get_json()
    assert data["slate"]["tokens_used"] == 1
    assert len(data["slate"]["entries"]) == 9
    assert data["draft"]["submitted"] is True

    with app.app_context():
        assert Slate.get_for_user(board.user_id, board.contest_id).id == data["slateId"]

    # Submitted slates are final
    blocked = _select(client, board.game_ids[10]).get_json()
    assert blocked["result"]["reason"] == "already_submitted"


def test_rejected_submit_keeps_draft(app, client, board, login):
    login()
    client.post(f"/slate/mlb/tokens/{board.game_ids[0]}")
    for game_id in board.game_ids[1:10]:
        assert _select(client, game_id).get_json()["success"]

    with app.app_context():
        db.session.get(Game, board.game_ids[5]).status = "in_progress"
        db.session.commit()

    response = client.post("/slate/mlb/submit")

    assert response.status_code == 400
    data = response.get_json()
    assert data["success"] is False
    assert data["reason"] == "game_unavailable"

    draft = client.get("/slate/mlb").get_json()["slate"]
    assert draft["submitted"] is False
    assert draft["units"] == 10
    assert draft["token_balance"] == 2

    with app.app_context():
        assert Slate.get_for_user(board.user_id, board.contest_id) is None


def test_logout_discards_draft(client, board, login):
    login()
    _select(client, board.game_ids[0])
    client.post("/auth/logout")
    login()

    assert client.get("/slate/mlb").get_json()["slate"]["units"] == 0


def test_unsupported_sport(client, board):
    assert client.get("/slate/cricket").status_code == 404


def test_sport_without_contest(client, board):
    response = client.get("/slate/nfl")

    assert response.status_code == 404
    assert response.get_json()["success"] is False
