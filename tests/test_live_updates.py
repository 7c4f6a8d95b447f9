from datetime import timedelta

import pytest

from perfect_slate import db, socketio
from perfect_slate.errors import TransientFetchFailure
from perfect_slate.models import Contest
from perfect_slate.services import scheduler_service as scheduler_module
from perfect_slate.services.scheduler_service import SchedulerService
from perfect_slate.socketio_handlers import broadcast_score_update
from perfect_slate.utils.timezone_utils import get_utc_time


def _events(client, name):
    return [event for event in client.get_received("/scores") if event["name"] == name]


def test_connect_sends_live_games(app):
    client = socketio.test_client(app, namespace="/scores")

    assert client.is_connected("/scores")
    live = _events(client, "live_games_data")
    assert live[0]["args"][0] == {"games": []}

    client.disconnect("/scores")


def test_subscribed_clients_receive_score_updates(app, make_contest):
    with app.app_context():
        contest = make_contest(game_count=3)
        contest_id = contest.id

    client = socketio.test_client(app, namespace="/scores")
    client.get_received("/scores")

    client.emit("subscribe_contest", {"contest_id": contest_id}, namespace="/scores")
    games = _events(client, "contest_games")
    assert games[0]["args"][0]["contest_id"] == contest_id
    assert len(games[0]["args"][0]["games"]) == 3

    with app.app_context():
        game = db.session.get(Contest, contest_id).get_games()[0]
        game.update_score(2, 1, "in_progress")
        db.session.commit()
        broadcast_score_update(game)

    updates = _events(client, "score_update")
    assert updates[0]["args"][0]["home_score"] == 2
    assert updates[0]["args"][0]["status"] == "in_progress"

    client.disconnect("/scores")


@pytest.fixture
def service(app):
    service = SchedulerService()
    service.app = app
    return service


def test_force_sync_lock_check(app, service, make_contest):
    with app.app_context():
        contest = make_contest(first_start=get_utc_time() + timedelta(hours=1), game_count=4)
        contest_id = contest.id

    success, _ = service.force_sync("lock")

    assert success
    with app.app_context():
        assert db.session.get(Contest, contest_id).status == "locked"


def test_force_sync_unknown_type(service):
    assert service.force_sync("weekly") == (False, "Unknown sync type: weekly")


def test_score_update_failure_is_recorded(app, service, monkeypatch):
    class UnreachableProvider:
        last_updated_games = []
        last_finalized_contests = []

        def update_scores(self, sport):
            raise TransientFetchFailure("Odds API unavailable after 3 attempts")

    monkeypatch.setattr(scheduler_module, "OddsSync", UnreachableProvider)

    with app.app_context():
        assert service._update_scores(["MLB", "NFL"]) == 0

    status = service.get_status()
    assert status["is_running"] is False
    assert status["stats"]["failed_syncs"] == 2
    assert status["stats"]["last_error"] == "Odds API unavailable after 3 attempts"
    assert status["stats"]["last_sync"] is not None


def test_score_update_success_is_recorded(app, service, monkeypatch):
    class QuietProvider:
        last_updated_games = []
        last_finalized_contests = []

        def update_scores(self, sport):
            return True, "No games to update"

    monkeypatch.setattr(scheduler_module, "OddsSync", QuietProvider)

    with app.app_context():
        service._update_scores(["MLB"])

    assert service.sync_stats["successful_syncs"] == 1
    assert service.sync_stats["last_error"] is None
