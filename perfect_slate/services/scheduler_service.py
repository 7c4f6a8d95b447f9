"""
Perfect Slate Background Scheduler Service

Keeps contests moving without anyone watching: pulls lines into open
contests, follows live scores, grades finished games and locks contests
as the schedule runs down. Uses APScheduler.
"""

import atexit
import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from perfect_slate import db
from perfect_slate.errors import TransientFetchFailure
from perfect_slate.models import Contest, Game
from perfect_slate.utils.cache_utils import invalidate_model_cache
from perfect_slate.utils.grading import refresh_contest_statuses
from perfect_slate.utils.odds_sync import OddsSync

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages background jobs for odds, scores and contest status"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.sync_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_sync": None,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "last_error": None,
            "games_updated": 0,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""

        # Live scores while games are being played
        self.scheduler.add_job(
            func=self._sync_live_scores,
            trigger=IntervalTrigger(seconds=90),
            id="sync_live_scores",
            name="Sync Live Scores",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        # Lock contests as the schedule runs down
        self.scheduler.add_job(
            func=self._lock_check,
            trigger=IntervalTrigger(minutes=1),
            id="lock_check",
            name="Contest Lock Check",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        # Refresh lines at the top of every hour
        self.scheduler.add_job(
            func=self._hourly_odds_sync,
            trigger=CronTrigger(minute=0),
            id="hourly_odds_sync",
            name="Hourly Odds Sync",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        # Daily maintenance (2 AM UTC)
        self.scheduler.add_job(
            func=self._daily_maintenance,
            trigger=CronTrigger(hour=2, minute=0),
            id="daily_maintenance",
            name="Daily Maintenance",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def _sports(self):
        return self.app.config.get("SUPPORTED_SPORTS", ["NFL", "NCAAF", "MLB"])

    def _sports_with_live_games(self):
        """Sports with a game in progress or past its start time"""
        now = datetime.now(timezone.utc)
        rows = (
            db.session.query(Game.sport)
            .filter(
                Game.status.in_(("scheduled", "in_progress")),
                Game.scheduled_time <= now,
                Game.scheduled_time >= now - timedelta(hours=24),
            )
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def _update_scores(self, sports):
        """Run a score update per sport and push the changes to clients"""
        total_updates = 0
        sync = OddsSync()

        for sport in sports:
            try:
                success, message = sync.update_scores(sport)
            except TransientFetchFailure as e:
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.warning(f"Score update for {sport} deferred: {e}")
                continue

            if not success:
                self._update_stats(False)
                self.sync_stats["last_error"] = message
                logger.warning(f"Score update issues for {sport}: {message}")
                continue

            updated = sync.last_updated_games
            total_updates += len(updated)
            self._update_stats(True, len(updated))

            if updated or sync.last_finalized_contests:
                invalidate_model_cache("Game")
                self._emit_score_updates(updated, sync.last_finalized_contests)

        return total_updates

    def _sync_live_scores(self):
        """High-frequency score sync, only while games are live"""
        with self.app.app_context():
            try:
                sports = self._sports_with_live_games()
                if not sports:
                    return  # Silent - nothing live

                updates = self._update_scores(sports)
                if updates:
                    logger.info(f"Live sync updated {updates} games")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in live score sync: {e}", exc_info=True)

    def _lock_check(self):
        """Move contests to locked / in progress as their games start"""
        with self.app.app_context():
            try:
                transitions = refresh_contest_statuses()
                if transitions:
                    invalidate_model_cache("Contest")
            except Exception as e:
                db.session.rollback()
                logger.error(f"Error in lock check: {e}", exc_info=True)

    def _hourly_odds_sync(self):
        """Load current lines into every open contest"""
        with self.app.app_context():
            sync = OddsSync()
            for sport in self._sports():
                if not Contest.get_open(sport):
                    continue

                try:
                    success, message = sync.sync_odds(sport)
                except TransientFetchFailure as e:
                    self._update_stats(False)
                    self.sync_stats["last_error"] = str(e)
                    logger.warning(f"Odds sync for {sport} deferred: {e}")
                    continue
                except Exception as e:
                    db.session.rollback()
                    self._update_stats(False)
                    self.sync_stats["last_error"] = str(e)
                    logger.error(f"Error in {sport} odds sync: {e}", exc_info=True)
                    continue

                self._update_stats(success)
                if success:
                    invalidate_model_cache("Game")
                    logger.info(f"Hourly {sport} odds sync: {message}")
                else:
                    self.sync_stats["last_error"] = message
                    logger.warning(f"Hourly {sport} odds sync issues: {message}")

    def _daily_maintenance(self):
        """Catch up scores for every sport and reset old statistics"""
        with self.app.app_context():
            try:
                logger.info("Running daily maintenance...")
                self._update_scores(self._sports())
                refresh_contest_statuses()
                self._cleanup_old_data()
                logger.info("Daily maintenance completed")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in daily maintenance: {e}", exc_info=True)

    def _emit_score_updates(self, games, finalized_contests=()):
        """Emit real-time score updates via SocketIO"""
        try:
            from perfect_slate.socketio_handlers import (
                broadcast_contest_completed,
                broadcast_game_final,
                broadcast_score_update,
            )

            for game in games:
                broadcast_score_update(game)
                if game.is_completed:
                    broadcast_game_final(game)

            for contest in finalized_contests:
                broadcast_contest_completed(contest)

        except Exception as e:
            logger.error(f"Error emitting score updates: {e}")

    def _update_stats(self, success, games_updated=0):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["games_updated"] += games_updated
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1

    def _cleanup_old_data(self):
        """Reset sync stats periodically"""
        if self.sync_stats["total_syncs"] > 10000:
            last_sync = self.sync_stats["last_sync"]
            self.sync_stats = self._empty_stats()
            self.sync_stats["last_sync"] = last_sync

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_sync(self, sync_type="live"):
        """Manually trigger a sync"""
        jobs = {
            "live": self._sync_live_scores,
            "lock": self._lock_check,
            "odds": self._hourly_odds_sync,
            "daily": self._daily_maintenance,
        }
        job = jobs.get(sync_type)
        if job is None:
            return False, f"Unknown sync type: {sync_type}"

        job()
        return True, f"Manual {sync_type} sync completed"

    def pause_job(self, job_id):
        """Pause a specific job"""
        try:
            self.scheduler.pause_job(job_id)
            return True, f"Job {job_id} paused"
        except Exception as e:
            return False, f"Failed to pause job: {e}"

    def resume_job(self, job_id):
        """Resume a specific job"""
        try:
            self.scheduler.resume_job(job_id)
            return True, f"Job {job_id} resumed"
        except Exception as e:
            return False, f"Failed to resume job: {e}"


# Global scheduler instance
scheduler_service = SchedulerService()
