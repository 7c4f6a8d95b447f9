"""
Contest lock timing

A contest stays open for picks until the fifth-to-last upcoming game of the
day starts. Once four or fewer scheduled games remain there are too few left
to build a diversified slate and the contest locks.
"""

from collections import namedtuple

from perfect_slate.utils.timezone_utils import ensure_utc, get_utc_time

PRE_CONTEST = "pre-contest"
ACTIVE = "active"
LOCKED = "locked"

LockStatus = namedtuple("LockStatus", ["status", "lock_time", "remaining"])


def upcoming_games(games, now):
    """Scheduled games that have not started yet, earliest first"""
    upcoming = [
        g
        for g in games
        if g.status == "scheduled"
        and g.scheduled_time is not None
        and ensure_utc(g.scheduled_time) > now
    ]
    return sorted(upcoming, key=lambda g: ensure_utc(g.scheduled_time))


def compute_lock_status(contest, games, now=None, games_remaining=5):
    """
    Compute whether picking is open for a contest.

    Args:
        contest: object with an ``open_time``
        games: the contest's games (``status`` and ``scheduled_time``)
        now: current time, defaults to UTC now
        games_remaining: how many upcoming games must remain for picking

    Returns:
        LockStatus(status, lock_time, remaining). ``lock_time`` is the open
        time for a pre-contest and the lock deadline for an active contest.
    """
    now = ensure_utc(now) if now is not None else get_utc_time()
    open_time = ensure_utc(contest.open_time)

    if open_time is not None and now < open_time:
        return LockStatus(PRE_CONTEST, open_time, open_time - now)

    upcoming = upcoming_games(games, now)
    if len(upcoming) < games_remaining:
        return LockStatus(LOCKED, None, None)

    lock_time = ensure_utc(upcoming[-games_remaining].scheduled_time)
    remaining = lock_time - now
    if remaining.total_seconds() <= 0:
        return LockStatus(LOCKED, lock_time, None)

    return LockStatus(ACTIVE, lock_time, remaining)


def format_remaining(lock_status):
    """Countdown text: '3h 12m', or 'LOCKED' once picking has closed"""
    if lock_status.status == LOCKED or lock_status.remaining is None:
        return "LOCKED"

    total_minutes = int(lock_status.remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def lock_status_to_dict(lock_status):
    return {
        "status": lock_status.status,
        "lock_time": lock_status.lock_time.isoformat() if lock_status.lock_time else None,
        "remaining_seconds": (
            int(lock_status.remaining.total_seconds())
            if lock_status.remaining is not None
            else None
        ),
        "time_remaining": format_remaining(lock_status),
    }
