import logging
import time
from datetime import timedelta
from functools import wraps

import requests
from flask import current_app

from perfect_slate import db
from perfect_slate.errors import TransientFetchFailure
from perfect_slate.models import Contest, Game, Pick, Team
from perfect_slate.utils.grading import (
    finalize_contest,
    grade_game_picks,
    refresh_contest_statuses,
)
from perfect_slate.utils.lines import apply_no_tie_line
from perfect_slate.utils.timezone_utils import get_utc_time, parse_iso_datetime

logger = logging.getLogger(__name__)

SPORT_KEYS = {
    "MLB": "baseball_mlb",
    "NFL": "americanfootball_nfl",
    "NCAAF": "americanfootball_ncaaf",
}


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff

    Gives up with TransientFetchFailure once retries are exhausted.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            last_error = None
            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)

                except requests.exceptions.HTTPError as e:
                    last_error = e
                    status = e.response.status_code if e.response is not None else None
                    if status == 429:
                        delay = float(
                            e.response.headers.get(
                                "Retry-After", base_delay * (backoff_factor**attempt)
                            )
                        )
                    elif status is not None and status >= 500:
                        delay = base_delay * (backoff_factor**attempt)
                    else:
                        # Client errors (bad key, unknown sport) will not improve on retry
                        raise TransientFetchFailure(f"Odds API error: {e}") from e

                    logger.warning(
                        f"Odds API returned {status}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )

                except requests.exceptions.RequestException as e:
                    last_error = e
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )

                if attempt < max_retries - 1:
                    time.sleep(delay)

            raise TransientFetchFailure(
                f"Odds API unavailable after {max_retries} attempts: {last_error}"
            )

        return wrapper

    return decorator


class OddsSync:
    """
    Pulls lines and scores from The Odds API into contests, games and picks
    """

    def __init__(self, api_key=None, api_base_url=None, regions=None):
        config = current_app.config
        self.api_key = api_key if api_key is not None else config.get("ODDS_API_KEY")
        self.api_base_url = (api_base_url or config.get("ODDS_API_BASE_URL")).rstrip("/")
        self.regions = regions or config.get("ODDS_API_REGIONS", "us")

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Perfect-Slate/1.0"})

        # Rate limiting configuration
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = 0.5
        self.max_requests_per_minute = 30
        self.request_timestamps = []

        # Provider quota from the last response
        self.remaining_quota = None

        # Games changed by the last score update, for live broadcasts
        self.last_updated_games = []
        self.last_finalized_contests = []

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        current_time = time.time()

        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        if len(self.request_timestamps) >= self.max_requests_per_minute:
            sleep_time = 60 - (current_time - self.request_timestamps[0])
            if sleep_time > 0:
                logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                time.sleep(sleep_time)
                self.request_timestamps = []

        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, path, params=None):
        """GET a provider endpoint and return the decoded JSON body"""
        self._enforce_rate_limit()

        params = dict(params or {})
        params["apiKey"] = self.api_key

        response = self.session.get(f"{self.api_base_url}{path}", params=params, timeout=30)
        response.raise_for_status()

        remaining = response.headers.get("x-requests-remaining")
        if remaining is not None:
            self.remaining_quota = remaining
        return response.json()

    def get_rate_limit_status(self):
        """Get current rate limit status"""
        current_time = time.time()
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        return {
            "total_requests": self.request_count,
            "requests_last_minute": len(self.request_timestamps),
            "max_requests_per_minute": self.max_requests_per_minute,
            "remaining_quota": self.remaining_quota,
        }

    @staticmethod
    def sport_key(sport):
        key = SPORT_KEYS.get(sport.upper())
        if not key:
            raise ValueError(f"Unsupported sport: {sport}")
        return key

    def fetch_odds(self, sport):
        """Current spreads and totals for a sport"""
        return self._make_api_request(
            f"/sports/{self.sport_key(sport)}/odds",
            params={
                "regions": self.regions,
                "markets": "spreads,totals",
                "oddsFormat": "american",
                "dateFormat": "iso",
            },
        )

    def fetch_scores(self, sport, days_from=1):
        """Live and recently completed scores for a sport"""
        return self._make_api_request(
            f"/sports/{self.sport_key(sport)}/scores",
            params={"daysFrom": days_from, "dateFormat": "iso"},
        )

    # Odds

    @staticmethod
    def extract_lines(event):
        """
        Pull a spread and total out of a provider event.

        Uses the first bookmaker quoting each market and applies the no-tie
        rule.

        Returns:
            tuple: ({"home": float, "away": float} or None, float or None)
        """
        home_team = event.get("home_team")
        away_team = event.get("away_team")
        spread = None
        total = None

        for bookmaker in event.get("bookmakers", []):
            for market in bookmaker.get("markets", []):
                outcomes = market.get("outcomes", [])
                if len(outcomes) < 2:
                    continue

                if market.get("key") == "spreads" and spread is None:
                    home = next((o for o in outcomes if o.get("name") == home_team), None)
                    away = next((o for o in outcomes if o.get("name") == away_team), None)
                    if home and away and home.get("point") is not None and away.get("point") is not None:
                        spread = {
                            "home": apply_no_tie_line(home["point"]),
                            "away": apply_no_tie_line(away["point"]),
                        }

                elif market.get("key") == "totals" and total is None:
                    if outcomes[0].get("point") is not None:
                        total = apply_no_tie_line(outcomes[0]["point"])

            if spread is not None and total is not None:
                break

        return spread, total

    def process_odds(self, sport, events, contest, now=None):
        """
        Upsert games and pick options for a contest from odds events.

        Returns:
            tuple: (games processed, games skipped)
        """
        now = now or get_utc_time()
        sport = sport.upper()
        processed = 0
        skipped = 0

        for event in events:
            label = f"{event.get('away_team')} @ {event.get('home_team')}"
            commence_time = parse_iso_datetime(event.get("commence_time"))

            if commence_time is None or commence_time.date() < now.date():
                logger.debug(f"Skipping {label} - game from previous day")
                skipped += 1
                continue

            spread, total = self.extract_lines(event)
            if spread is None or total is None:
                logger.debug(f"Skipping {label} - missing lines")
                skipped += 1
                continue

            game = Game.query.filter_by(external_id=event["id"]).first()
            if game and not game.is_available(now):
                logger.debug(f"Skipping {label} - game already started")
                skipped += 1
                continue

            if game:
                game.home_spread = spread["home"]
                game.away_spread = spread["away"]
                game.total_points = total
                game.scheduled_time = commence_time
                Pick.update_lines_for_game(game, spread, total)
            else:
                game = Game(
                    external_id=event["id"],
                    contest_id=contest.id,
                    sport=sport,
                    home_team=event["home_team"],
                    away_team=event["away_team"],
                    home_team_short=Team.abbreviation_for(sport, event["home_team"]),
                    away_team_short=Team.abbreviation_for(sport, event["away_team"]),
                    scheduled_time=commence_time,
                    home_spread=spread["home"],
                    away_spread=spread["away"],
                    total_points=total,
                    status="scheduled",
                )
                db.session.add(game)
                db.session.flush()
                Pick.create_for_game(game, spread, total)

            processed += 1

        return processed, skipped

    def sync_odds(self, sport, now=None):
        """
        Load today's lines for a sport into its open contest.

        Raises:
            TransientFetchFailure: provider unreachable after retries

        Returns:
            tuple: (success, message)
        """
        sport = sport.upper()
        if not self.api_key:
            return False, "ODDS_API_KEY is not configured"

        contest = Contest.get_open(sport)
        if not contest:
            return False, f"No open {sport} contest found"

        events = self.fetch_odds(sport)
        logger.info(f"Found {len(events)} {sport} games from odds provider")

        try:
            processed, skipped = self.process_odds(sport, events, contest, now=now)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error syncing {sport} odds: {e}", exc_info=True)
            return False, str(e)

        message = (
            f"Processed {processed} games, skipped {skipped} "
            f"(remaining quota: {self.remaining_quota})"
        )
        logger.info(f"{sport} odds sync: {message}")
        return True, message

    # Scores

    @staticmethod
    def _team_score(score_event, team_name):
        for entry in score_event.get("scores") or []:
            if entry.get("name") == team_name:
                try:
                    return int(entry.get("score") or 0)
                except (TypeError, ValueError):
                    return 0
        return 0

    def games_needing_scores(self, sport, now=None):
        """Scheduled or live games that started within the last day"""
        now = now or get_utc_time()
        return Game.query.filter(
            Game.sport == sport.upper(),
            Game.status.in_(("scheduled", "in_progress")),
            Game.scheduled_time >= now - timedelta(hours=24),
        ).all()

    def process_scores(self, games, score_events):
        """
        Apply score events to games and grade games that just completed.

        Returns:
            tuple: (updated games, newly completed games)
        """
        scores_by_id = {event.get("id"): event for event in score_events}
        updated = []
        completed = []

        for game in games:
            if not game.external_id:
                continue

            score_event = scores_by_id.get(game.external_id)
            if not score_event:
                logger.debug(f"No score data for game {game.id} ({game.away_team} @ {game.home_team})")
                continue

            was_completed = game.is_completed
            if score_event.get("completed"):
                status = "completed"
            elif score_event.get("scores"):
                status = "in_progress"
            else:
                continue

            home_score = self._team_score(score_event, game.home_team)
            away_score = self._team_score(score_event, game.away_team)

            if game.update_score(home_score, away_score, status):
                updated.append(game)
                if game.is_completed and not was_completed:
                    completed.append(game)

        db.session.flush()
        for game in completed:
            grade_game_picks(game)

        return updated, completed

    def update_scores(self, sport, now=None):
        """
        Refresh live scores, grade completed games and settle finished contests.

        Raises:
            TransientFetchFailure: provider unreachable after retries

        Returns:
            tuple: (success, message)
        """
        sport = sport.upper()
        now = now or get_utc_time()
        self.last_updated_games = []
        self.last_finalized_contests = []

        if not self.api_key:
            return False, "ODDS_API_KEY is not configured"

        games = self.games_needing_scores(sport, now=now)
        if not games:
            refresh_contest_statuses(now=now, sport=sport)
            return True, "No games to update"

        score_events = self.fetch_scores(sport)

        try:
            updated, completed = self.process_scores(games, score_events)
            db.session.commit()

            if completed:
                contests = Contest.query.filter(
                    Contest.sport == sport,
                    Contest.status.in_(("open", "locked", "in_progress")),
                ).all()
                for contest in contests:
                    if contest.all_games_completed():
                        ok, _ = finalize_contest(contest)
                        if ok:
                            self.last_finalized_contests.append(contest)

            refresh_contest_statuses(now=now, sport=sport)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating {sport} scores: {e}", exc_info=True)
            return False, str(e)

        self.last_updated_games = updated
        message = (
            f"Checked {len(games)} games, updated {len(updated)}, "
            f"completed {len(completed)}"
        )
        logger.info(f"{sport} score update: {message}")
        return True, message


def sync_odds(sport, now=None):
    """Convenience wrapper around OddsSync.sync_odds"""
    return OddsSync().sync_odds(sport, now=now)


def update_scores(sport, now=None):
    """Convenience wrapper around OddsSync.update_scores"""
    return OddsSync().update_scores(sport, now=now)
