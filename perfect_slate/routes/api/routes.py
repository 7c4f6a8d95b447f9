from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from perfect_slate import db, limiter
from perfect_slate.errors import ContestNotFound
from perfect_slate.forms.auth import form_errors
from perfect_slate.forms.profile import EditProfileForm
from perfect_slate.models import Contest, Game, Slate, UserProfile
from perfect_slate.routes.api import bp
from perfect_slate.services.submission import submit_slate
from perfect_slate.utils.cache_utils import cached_query
from perfect_slate.utils.lock_time import lock_status_to_dict


def add_security_headers(f):
    """Add no-store caching headers to per-user API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = current_app.make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return response

    return decorated_function


@cached_query("Game", timeout=30)
def contest_board(contest_id):
    """Games of a contest with their pick options, as plain data"""
    contest = db.session.get(Contest, contest_id)
    if not contest:
        return None
    return [game.to_dict(include_picks=True) for game in contest.get_games()]


def with_live_availability(board, games, now=None):
    """Overlay status, scores and availability onto a cached board"""
    live = {game.id: game for game in games}
    merged = []
    for entry in board or []:
        game = live.get(entry["id"])
        if game is None:
            continue
        merged.append(
            dict(
                entry,
                status=game.status,
                home_score=game.home_score,
                away_score=game.away_score,
                is_available=game.is_available(now),
            )
        )
    return merged


@bp.route("/contests/current/<sport>")
def current_contest(sport):
    """Current contest for a sport with games, picks and lock status"""
    sport = sport.upper()
    if sport not in current_app.config.get("SUPPORTED_SPORTS", []):
        return jsonify({"success": False, "error": f"Unsupported sport: {sport}"}), 404

    contest = Contest.get_current(sport)
    if not contest:
        raise ContestNotFound(f"No active {sport} contest")

    games = contest.get_games()
    data = {
        "success": True,
        "contest": contest.to_dict(),
        "lock_status": lock_status_to_dict(contest.lock_status(games=games)),
        "games": with_live_availability(contest_board(contest.id), games),
    }

    if current_user.is_authenticated:
        profile = UserProfile.get_or_create(current_user)
        db.session.commit()
        slate = Slate.get_for_user(current_user.id, contest.id)
        data["token_balance"] = profile.token_balance
        data["slate"] = slate.to_dict() if slate else None

    return jsonify(data)


@bp.route("/contests/<int:contest_id>/games")
def contest_games(contest_id):
    contest = db.session.get(Contest, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")

    return jsonify(
        {"success": True, "contest_id": contest.id, "games": contest_board(contest.id)}
    )


@bp.route("/games/<int:game_id>")
def game_detail(game_id):
    game = db.session.get(Game, game_id)
    if not game:
        return jsonify({"success": False, "error": "Game not found"}), 404
    return jsonify({"success": True, "game": game.to_dict(include_picks=True)})


@bp.route("/profile", methods=["GET"])
@login_required
@add_security_headers
def get_profile():
    profile = UserProfile.get_or_create(current_user)
    db.session.commit()
    return jsonify({"success": True, "profile": profile.to_dict()})


@bp.route("/profile", methods=["PATCH"])
@login_required
@add_security_headers
def update_profile():
    profile = UserProfile.get_or_create(current_user)
    form = EditProfileForm(profile)
    if not form.validate_on_submit():
        db.session.rollback()
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    # Only touch the fields the client sent
    submitted = request.get_json(silent=True) or request.form
    if form.username.data:
        profile.username = form.username.data.strip()
    if "favorite_team" in submitted:
        profile.favorite_team = (form.favorite_team.data or "").strip() or None
    if "favorite_sport" in submitted:
        profile.favorite_sport = (form.favorite_sport.data or "").upper() or None

    db.session.commit()
    return jsonify({"success": True, "profile": profile.to_dict()})


@bp.route("/slates")
@login_required
@add_security_headers
def slate_history():
    """The caller's submitted slates, newest first"""
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 20, type=int), 100)

    pagination = (
        Slate.query.filter_by(user_id=current_user.id)
        .order_by(Slate.submitted_at.desc())
        .paginate(page=page, per_page=per_page, error_out=False)
    )

    slates = []
    for slate in pagination.items:
        data = slate.to_dict()
        data["contest"] = slate.contest.to_dict()
        slates.append(data)

    return jsonify(
        {
            "success": True,
            "slates": slates,
            "page": pagination.page,
            "pages": pagination.pages,
            "total": pagination.total,
        }
    )


@bp.route("/scores/live")
def live_scores():
    """Games in progress, plus games that finished in the last day"""
    since = datetime.now(timezone.utc) - timedelta(hours=24)
    query = Game.query.filter(
        db.or_(
            Game.status == "in_progress",
            db.and_(Game.status.in_(("final", "completed")), Game.scheduled_time >= since),
        )
    )

    sport = request.args.get("sport")
    if sport:
        query = query.filter(Game.sport == sport.upper())

    games = query.order_by(Game.scheduled_time).all()
    return jsonify(
        {
            "games": [game.to_dict() for game in games],
            "has_live_games": any(game.status == "in_progress" for game in games),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
    )


@bp.route("/submit-picks", methods=["POST"])
@limiter.limit("10 per minute")
def submit_picks():
    """
    Submit a slate.

    Body: {"contestId": int, "picks": [pick ids], "tokensUsed": int}
    Auth: bearer token or session.
    """
    if not current_user.is_authenticated:
        return jsonify({"success": False, "error": "Authentication required"}), 401

    slate = submit_slate(current_user, request.get_json(silent=True))
    return jsonify({"success": True, "slateId": slate.id}), 201
