from datetime import timedelta

import pytest

from perfect_slate import create_app, db
from perfect_slate.models import Contest, Game, Pick, User, UserProfile
from perfect_slate.utils.timezone_utils import get_utc_time

PASSWORD = "Password123"

TEAMS = [
    ("New York Yankees", "Boston Red Sox"),
    ("Los Angeles Dodgers", "San Francisco Giants"),
    ("Chicago Cubs", "St. Louis Cardinals"),
    ("Houston Astros", "Texas Rangers"),
    ("Atlanta Braves", "New York Mets"),
    ("Seattle Mariners", "Oakland Athletics"),
    ("Toronto Blue Jays", "Tampa Bay Rays"),
    ("Detroit Tigers", "Cleveland Guardians"),
    ("San Diego Padres", "Arizona Diamondbacks"),
    ("Milwaukee Brewers", "Cincinnati Reds"),
    ("Philadelphia Phillies", "Washington Nationals"),
    ("Minnesota Twins", "Kansas City Royals"),
]


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that call services and models directly"""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    def _make_user(username="alice", password=PASSWORD, tokens=None, is_admin=False):
        user = User(
            username=username, email=f"{username}@example.com", is_admin=is_admin
        )
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

        profile = UserProfile.get_or_create(user)
        if tokens is not None:
            profile.token_balance = tokens
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_contest():
    def _make_contest(
        sport="MLB",
        week_number=1,
        game_count=12,
        first_start=None,
        spacing=timedelta(hours=1),
        open_time=None,
        prize_pool=1000.0,
    ):
        now = get_utc_time()
        open_time = open_time or now - timedelta(hours=1)
        first_start = first_start or now + timedelta(hours=1)

        contest = Contest.create_contest(
            sport,
            week_number,
            open_time,
            open_time + timedelta(days=1),
            open_time + timedelta(days=2),
            base_prize_pool=prize_pool,
        )
        db.session.flush()

        for index in range(game_count):
            home, away = TEAMS[index % len(TEAMS)]
            game = Game(
                contest_id=contest.id,
                sport=sport,
                external_id=f"{sport.lower()}-w{week_number}-{index}",
                home_team=home,
                away_team=away,
                home_team_short=home[:3].upper(),
                away_team_short=away[:3].upper(),
                scheduled_time=first_start + spacing * index,
                home_spread=-1.5,
                away_spread=1.5,
                total_points=8.5,
                status="scheduled",
            )
            db.session.add(game)
            db.session.flush()
            Pick.create_for_game(game, {"home": -1.5, "away": 1.5}, 8.5)

        db.session.commit()
        return contest

    return _make_contest


def pick_ids(game):
    """{(pick_type, selection): pick id} for a game"""
    return {(p.pick_type, p.selection): p.id for p in game.picks.all()}


def ten_pick_ids(contest, tokens=0):
    """A legal slate: one spread pick per game, skipping the first ``tokens`` games"""
    games = contest.get_games()
    return [pick_ids(game)[("spread", "home")] for game in games[tokens:10]]


@pytest.fixture
def login(client):
    def _login(username="alice", password=PASSWORD):
        response = client.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return response.get_json()

    return _login
