"""
SocketIO Event Handlers for Real-time Updates

Clients join a contest room on the /scores namespace and receive score
changes as the scheduler picks them up, instead of polling.
"""

import logging

from flask import request
from flask_login import current_user
from flask_socketio import disconnect, emit, join_room, leave_room

from perfect_slate import db, socketio
from perfect_slate.models import Contest, Game, Slate, SlateEntry

logger = logging.getLogger(__name__)

# Track connected clients and their rooms
connected_users = {}


def contest_room(contest_id):
    return f"contest_{contest_id}"


def user_room(user_id):
    return f"user_slates_{user_id}"


@socketio.on("connect", namespace="/scores")
def on_connect():
    """Handle client connection to scores namespace"""
    try:
        user_id = current_user.id if current_user.is_authenticated else None
        client_id = request.sid

        logger.info(f"Client connected to /scores: {client_id} (user: {user_id})")
        connected_users[client_id] = {"user_id": user_id, "subscriptions": set()}

        live_games = Game.query.filter_by(status="in_progress").all()
        emit("live_games_data", {"games": [game.to_dict() for game in live_games]})

    except Exception as e:
        logger.error(f"Error in scores connect: {e}")


@socketio.on("disconnect", namespace="/scores")
def on_disconnect():
    """Handle client disconnection from scores namespace"""
    client_id = request.sid
    client = connected_users.pop(client_id, None)
    if client:
        logger.info(
            f"Client disconnected from /scores: {client_id} (user: {client['user_id']})"
        )


@socketio.on("subscribe_contest", namespace="/scores")
def on_subscribe_contest(data):
    """Join a contest room and receive its current games"""
    try:
        client_id = request.sid
        contest_id = (data or {}).get("contest_id")
        if client_id not in connected_users or not contest_id:
            return

        room = contest_room(contest_id)
        if room in connected_users[client_id]["subscriptions"]:
            return

        connected_users[client_id]["subscriptions"].add(room)
        join_room(room)

        contest = db.session.get(Contest, contest_id)
        if contest:
            emit(
                "contest_games",
                {
                    "contest_id": contest.id,
                    "games": [game.to_dict() for game in contest.get_games()],
                },
            )

        logger.debug(f"Client {client_id} subscribed to contest {contest_id}")
    except Exception as e:
        logger.error(f"Error in subscribe_contest: {e}")


@socketio.on("unsubscribe_contest", namespace="/scores")
def on_unsubscribe_contest(data):
    """Leave a contest room"""
    client_id = request.sid
    contest_id = (data or {}).get("contest_id")
    if client_id in connected_users and contest_id:
        room = contest_room(contest_id)
        connected_users[client_id]["subscriptions"].discard(room)
        leave_room(room)
        logger.debug(f"Client {client_id} unsubscribed from contest {contest_id}")


@socketio.on("subscribe_user_slates", namespace="/scores")
def on_subscribe_user_slates(data=None):
    """Receive grading results for the signed-in user's slates"""
    if not current_user.is_authenticated:
        disconnect()
        return

    client_id = request.sid
    if client_id in connected_users:
        room = user_room(current_user.id)
        connected_users[client_id]["subscriptions"].add(room)
        join_room(room)
        logger.debug(f"Client {client_id} subscribed to slates of user {current_user.id}")


# Broadcast functions (called from scheduler service)
def broadcast_score_update(game):
    """Broadcast score update to the game's contest room"""
    try:
        socketio.emit(
            "score_update",
            game.to_dict(),
            room=contest_room(game.contest_id),
            namespace="/scores",
        )
        logger.debug(f"Broadcasted score update for game {game.id}")

    except Exception as e:
        logger.error(f"Error broadcasting score update: {e}")


def broadcast_game_final(game):
    """Broadcast a completed game and the slate entries it decided"""
    try:
        socketio.emit(
            "game_final",
            game.to_dict(),
            room=contest_room(game.contest_id),
            namespace="/scores",
        )

        entries = (
            SlateEntry.query.filter_by(game_id=game.id)
            .join(Slate, Slate.id == SlateEntry.slate_id)
            .all()
        )
        for entry in entries:
            socketio.emit(
                "slate_result",
                {
                    "slate_id": entry.slate_id,
                    "game_id": game.id,
                    "pick_id": entry.pick_id,
                    "is_correct": entry.is_correct,
                    "correct_count": entry.slate.correct_count,
                    "result": entry.slate.result,
                },
                room=user_room(entry.slate.user_id),
                namespace="/scores",
            )

        logger.info(
            f"Broadcasted game final for game {game.id}, notified {len(entries)} slate entries"
        )

    except Exception as e:
        logger.error(f"Error broadcasting game final: {e}")
        db.session.rollback()


def broadcast_contest_completed(contest):
    """Tell a contest room the contest has been settled"""
    try:
        socketio.emit(
            "contest_completed",
            contest.to_dict(),
            room=contest_room(contest.id),
            namespace="/scores",
        )
        logger.info(f"Broadcasted completion of contest {contest.id}")

    except Exception as e:
        logger.error(f"Error broadcasting contest completion: {e}")


def get_connection_stats():
    """Get detailed connection statistics"""
    return {
        "total_connections": len(connected_users),
        "authenticated_users": len(
            [u for u in connected_users.values() if u["user_id"]]
        ),
        "anonymous_users": len(
            [u for u in connected_users.values() if not u["user_id"]]
        ),
        "total_subscriptions": sum(
            len(u["subscriptions"]) for u in connected_users.values()
        ),
    }
