#!/usr/bin/env python3
"""
Perfect Slate Management CLI

Command-line management for contests, odds/score syncing, users and the database.
"""

import logging
import os
import secrets
from datetime import datetime, timedelta, timezone

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

# Background jobs belong to the web process, not to one-off commands
os.environ.setdefault("SCHEDULER_ENABLED", "False")

from perfect_slate import create_app, db  # noqa: E402
from perfect_slate.errors import TransientFetchFailure  # noqa: E402
from perfect_slate.models import Contest, Game, Slate, User, UserProfile  # noqa: E402
from perfect_slate.utils.grading import (  # noqa: E402
    finalize_contest,
    refresh_contest_statuses,
)
from perfect_slate.utils.odds_sync import OddsSync  # noqa: E402

app = create_app()

DATETIME_FORMATS = ["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d"]


def _as_utc(value):
    return value.replace(tzinfo=timezone.utc) if value else None


@click.group()
def cli():
    """Perfect Slate Management CLI"""
    pass


# Contest Management Commands
@cli.group()
def contest():
    """Contest management commands"""
    pass


@contest.command("create")
@click.argument("sport")
@click.option("--week", type=int, help="Week number (default: next for the sport)")
@click.option(
    "--open-time",
    type=click.DateTime(formats=DATETIME_FORMATS),
    help="When picking opens, UTC (default: now)",
)
@click.option(
    "--lock-time",
    type=click.DateTime(formats=DATETIME_FORMATS),
    help="Nominal lock time, UTC (default: open + 1 day)",
)
@click.option(
    "--close-time",
    type=click.DateTime(formats=DATETIME_FORMATS),
    help="When the contest closes, UTC (default: lock + 1 day)",
)
@click.option("--prize-pool", type=float, help="Base prize pool")
@click.option("--sponsor-bonus", type=float, default=0.0, help="Sponsor bonus")
@with_appcontext
def create_contest(sport, week, open_time, lock_time, close_time, prize_pool, sponsor_bonus):
    """Create a contest for SPORT"""
    sport = sport.upper()
    if sport not in app.config["SUPPORTED_SPORTS"]:
        click.echo(f"❌ Unsupported sport: {sport}")
        return

    try:
        if week is None:
            latest = (
                Contest.query.filter_by(sport=sport)
                .order_by(Contest.week_number.desc())
                .first()
            )
            week = latest.week_number + 1 if latest else 1

        open_time = _as_utc(open_time) or datetime.now(timezone.utc)
        lock_time = _as_utc(lock_time) or open_time + timedelta(days=1)
        close_time = _as_utc(close_time) or lock_time + timedelta(days=1)

        new_contest = Contest.create_contest(
            sport,
            week,
            open_time,
            lock_time,
            close_time,
            base_prize_pool=prize_pool,
            sponsor_bonus=sponsor_bonus,
        )
        db.session.commit()

        click.echo(
            f"✅ Created {sport} contest week {week} "
            f"(prize pool {new_contest.final_prize_pool:.2f}, "
            f"rollover {new_contest.rollover_amount:.2f})"
        )

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ {sport} week {week} already exists!")
        logging.error(f"Contest creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating contest: {str(e)}")
        logging.error(f"Contest creation failed - SQL error: {e}")


@contest.command("list")
@click.option("--sport", help="Only show one sport")
@with_appcontext
def list_contests(sport):
    """List contests"""
    query = Contest.query
    if sport:
        query = query.filter_by(sport=sport.upper())
    contests = query.order_by(Contest.sport, Contest.week_number.desc()).all()

    if not contests:
        click.echo("No contests found.")
        return

    click.echo("Contests:")
    for c in contests:
        lock = c.lock_status()
        click.echo(
            f"  #{c.id} {c.sport} week {c.week_number}: {c.status} "
            f"(picking {lock.status}) - {c.games.count()} games, "
            f"{c.total_entries or 0} entries, pool {c.final_prize_pool or 0:.2f}"
        )


@contest.command("lock-check")
@with_appcontext
def lock_check():
    """Move contests to locked / in progress from the schedule"""
    transitions = refresh_contest_statuses()
    if not transitions:
        click.echo("✅ No contest status changes")
        return

    for c, old_status, new_status in transitions:
        click.echo(f"✅ Contest #{c.id} ({c.sport} week {c.week_number}): {old_status} -> {new_status}")


@contest.command("finalize")
@click.argument("contest_id", type=int)
@with_appcontext
def finalize(contest_id):
    """Grade and settle a contest whose games are all complete"""
    c = db.session.get(Contest, contest_id)
    if not c:
        click.echo(f"❌ Contest {contest_id} not found!")
        return

    try:
        success, message = finalize_contest(c)
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error finalizing contest: {str(e)}")
        return

    click.echo(f"{'✅' if success else '❌'} {message}")


# Data Sync Commands
@cli.group()
def sync():
    """Odds and score synchronization commands"""
    pass


@sync.command()
@click.argument("sport")
@with_appcontext
def odds(sport):
    """Load current lines for SPORT into its open contest"""
    try:
        click.echo(f"Syncing {sport.upper()} odds...")
        success, message = OddsSync().sync_odds(sport)
        click.echo(f"{'✅' if success else '❌'} {message}")
    except (TransientFetchFailure, ValueError) as e:
        click.echo(f"❌ Error syncing odds: {str(e)}")


@sync.command()
@click.argument("sport")
@with_appcontext
def scores(sport):
    """Update scores, grade games and settle contests for SPORT"""
    try:
        click.echo(f"Updating {sport.upper()} scores...")
        success, message = OddsSync().update_scores(sport)
        click.echo(f"{'✅' if success else '❌'} {message}")
    except (TransientFetchFailure, ValueError) as e:
        click.echo(f"❌ Error updating scores: {str(e)}")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@with_appcontext
def create_admin(username, email, password):
    """Create an admin user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        click.echo(
            f"❌ User with username '{username}' or email '{email}' already exists!"
        )
        return

    try:
        new_user = User(username=username, email=email.lower(), is_active=True, is_admin=True)
        new_user.set_password(password)
        db.session.add(new_user)
        db.session.flush()
        UserProfile.get_or_create(new_user)
        db.session.commit()

        click.echo(f"✅ Created admin user '{username}' ({email})")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        admin = " [admin]" if u.is_admin else ""
        tokens = u.profile.token_balance if u.profile else 0
        click.echo(f"  {status} {u.username} ({u.email}){admin} - {tokens} tokens")


@user.command()
@click.argument("username")
@click.argument("amount", type=int)
@with_appcontext
def grant_tokens(username, amount):
    """Give AMOUNT tokens to USERNAME"""
    if amount <= 0:
        click.echo("❌ Amount must be positive")
        return

    u = User.query.filter_by(username=username).first()
    if not u:
        click.echo(f"❌ User '{username}' not found!")
        return

    profile = UserProfile.get_or_create(u)
    profile.grant_tokens(amount)
    db.session.commit()
    click.echo(f"✅ {username} now has {profile.token_balance} tokens")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Info Commands
@cli.command("generate-secrets")
def generate_secrets():
    """Print fresh SECRET_KEY and WTF_CSRF_SECRET_KEY values for .env"""
    click.echo("🔐 Generating secure secrets for Perfect Slate...")
    click.echo("=" * 40)
    click.echo(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    click.echo(f"WTF_CSRF_SECRET_KEY={secrets.token_urlsafe(32)}")
    click.echo("=" * 40)
    click.echo("📝 Copy these values to your .env file")
    click.echo("⚠️  Keep these secrets secure and never commit them to version control!")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🎯 Perfect Slate Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    for sport in app.config["SUPPORTED_SPORTS"]:
        current = Contest.get_current(sport)
        if not current:
            click.echo(f"⚠️  {sport}: no active contest")
            continue

        games = current.get_games()
        completed = sum(1 for g in games if g.is_completed)
        click.echo(
            f"✅ {sport}: week {current.week_number} {current.status} "
            f"(picking {current.lock_status(games=games).status}), "
            f"{completed}/{len(games)} games completed"
        )

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")
    click.echo(f"📝 Slates Submitted: {Slate.query.count()}")
    click.echo(f"🎮 Live Games: {Game.query.filter_by(status='in_progress').count()}")

    if not app.config.get("ODDS_API_KEY"):
        click.echo("⚠️  ODDS_API_KEY not set, syncing is disabled")


if __name__ == "__main__":
    with app.app_context():
        cli()
