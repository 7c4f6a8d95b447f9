import logging

from flask import abort, current_app, jsonify, session
from flask_login import current_user

from perfect_slate import db, limiter
from perfect_slate.errors import ContestNotFound
from perfect_slate.forms.auth import form_errors
from perfect_slate.forms.slate import SelectPickForm
from perfect_slate.models import Contest, Slate, UserProfile
from perfect_slate.routes.slate import bp
from perfect_slate.services.slate_builder import (
    DRAFT_SESSION_KEY,
    SlateBuilder,
    SlateState,
)
from perfect_slate.services.submission import submit_slate
from perfect_slate.utils.lines import pick_display_text
from perfect_slate.utils.lock_time import LOCKED, lock_status_to_dict

logger = logging.getLogger(__name__)


# Helper functions for slate routes
def _validate_sport(sport):
    sport = sport.upper()
    if sport not in current_app.config.get("SUPPORTED_SPORTS", []):
        abort(404)
    return sport


def _load_builder(sport):
    """Rebuild the caller's draft for the sport's current contest

    Returns:
        tuple: (builder, contest, lock_status, games_by_id)
    """
    contest = Contest.get_current(sport)
    if not contest:
        raise ContestNotFound(f"No active {sport} contest")

    games = contest.get_games()
    games_by_id = {game.id: game for game in games}
    lock_status = contest.lock_status(games=games)

    # Only an open contest follows the schedule; anything later is closed
    contest_status = lock_status.status if contest.status == "open" else LOCKED

    drafts = session.get(DRAFT_SESSION_KEY, {})
    draft = drafts.get(sport)
    if draft and draft.get("contest_id") == contest.id:
        state = SlateState.from_dict(draft.get("state"))
    else:
        state = SlateState()

    token_balance = None
    authenticated = current_user.is_authenticated
    if authenticated:
        profile = UserProfile.get_or_create(current_user)
        db.session.commit()
        token_balance = profile.token_balance
        if Slate.get_for_user(current_user.id, contest.id):
            state.submitted = True

    builder = SlateBuilder.from_config(
        current_app.config,
        state=state,
        contest_status=contest_status,
        games=games_by_id,
        authenticated=authenticated,
        token_balance=token_balance,
    )
    return builder, contest, lock_status, games_by_id


def _save_builder(sport, contest, builder):
    drafts = dict(session.get(DRAFT_SESSION_KEY, {}))
    drafts[sport] = {"contest_id": contest.id, "state": builder.state.to_dict()}
    session[DRAFT_SESSION_KEY] = drafts
    session.modified = True


def _slate_response(builder, contest, lock_status, result=None):
    data = {
        "success": result.allowed if result is not None else True,
        "contest_id": contest.id,
        "lock_status": lock_status_to_dict(lock_status),
        "slate": builder.to_dict(),
    }
    if result is not None:
        data["result"] = result.to_dict()
    return jsonify(data)


@bp.route("/<sport>")
def view_slate(sport):
    """Current draft with lock status and countdown"""
    sport = _validate_sport(sport)
    builder, contest, lock_status, _ = _load_builder(sport)
    return _slate_response(builder, contest, lock_status)


@bp.route("/<sport>/picks", methods=["POST"])
@limiter.limit("120 per minute")
def select_pick(sport):
    """Select, switch or deselect a pick"""
    sport = _validate_sport(sport)
    form = SelectPickForm()
    if not form.validate_on_submit():
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    builder, contest, lock_status, games_by_id = _load_builder(sport)

    # Pick id and label come from the database, not the client
    game = games_by_id.get(form.game_id.data)
    pick = game.get_pick(form.pick_type.data, form.selection.data) if game else None

    result = builder.select_pick(
        form.game_id.data,
        form.pick_type.data,
        form.selection.data,
        display_text=pick_display_text(pick, game) if pick else "",
        pick_id=pick.id if pick else None,
    )
    if result:
        _save_builder(sport, contest, builder)

    return _slate_response(builder, contest, lock_status, result)


@bp.route("/<sport>/picks/<int:index>", methods=["DELETE"])
def remove_pick(sport, index):
    sport = _validate_sport(sport)
    builder, contest, lock_status, _ = _load_builder(sport)

    result = builder.remove_pick(index)
    if result:
        _save_builder(sport, contest, builder)

    return _slate_response(builder, contest, lock_status, result)


@bp.route("/<sport>/tokens/<int:game_id>", methods=["POST"])
def toggle_token(sport, game_id):
    sport = _validate_sport(sport)
    builder, contest, lock_status, _ = _load_builder(sport)

    result = builder.toggle_token(game_id)
    if result:
        _save_builder(sport, contest, builder)

    return _slate_response(builder, contest, lock_status, result)


@bp.route("/<sport>/reset", methods=["POST"])
def reset_slate(sport):
    """Throw the draft away"""
    sport = _validate_sport(sport)
    builder, contest, lock_status, _ = _load_builder(sport)

    builder.reset()
    _save_builder(sport, contest, builder)

    return _slate_response(builder, contest, lock_status)


@bp.route("/<sport>/submit", methods=["POST"])
@limiter.limit("10 per minute")
def submit(sport):
    """Send the completed draft to the submission service"""
    sport = _validate_sport(sport)
    builder, contest, lock_status, _ = _load_builder(sport)

    result = builder.check_submittable()
    if not result:
        return _slate_response(builder, contest, lock_status, result)

    # A rejection propagates as JSON and the draft stays as it was
    slate = submit_slate(current_user, builder.build_submission(contest.id))

    builder.mark_submitted()
    _save_builder(sport, contest, builder)

    response = {
        "success": True,
        "slateId": slate.id,
        "slate": slate.to_dict(),
        "draft": builder.to_dict(),
    }
    return jsonify(response), 201
