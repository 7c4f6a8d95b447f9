import logging

from flask import jsonify, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from perfect_slate import db, limiter, login_manager
from perfect_slate.forms.auth import (
    ChangePasswordForm,
    LoginForm,
    RegistrationForm,
    form_errors,
)
from perfect_slate.models import User, UserProfile
from perfect_slate.routes.auth import bp
from perfect_slate.services.slate_builder import DRAFT_SESSION_KEY
from perfect_slate.utils.auth_tokens import (
    auth_session_from_request,
    issue_access_token,
)

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    """Authenticate API clients by 'Authorization: Bearer <token>'"""
    auth_session = auth_session_from_request(request)
    if auth_session is None:
        return None

    user = db.session.get(User, auth_session.user_id)
    if user and user.is_active:
        return user
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "error": "Authentication required"}), 401


def _token_response(user):
    auth_session = issue_access_token(user)
    return {
        "access_token": auth_session.access_token,
        "token_type": "Bearer",
        "expires_at": auth_session.expires_at.isoformat(),
    }


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    form = RegistrationForm()
    if not form.validate_on_submit():
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    try:
        user = User(username=form.username.data, email=form.email.data.lower())
        user.set_password(form.password.data)
        db.session.add(user)
        db.session.flush()

        profile = UserProfile.get_or_create(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error registering user {form.username.data}: {e}", exc_info=True)
        return jsonify({"success": False, "error": "Registration failed"}), 500

    login_user(user)
    logger.info(f"Registered user {user.id} ({user.username})")

    return (
        jsonify(
            {
                "success": True,
                "user": user.to_dict(),
                "profile": profile.to_dict(),
                "token": _token_response(user),
            }
        ),
        201,
    )


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    user = User.query.filter_by(username=form.username.data).first()
    if not user or not user.check_password(form.password.data):
        return jsonify({"success": False, "error": "Invalid username or password"}), 401

    if not user.is_active:
        return (
            jsonify(
                {
                    "success": False,
                    "error": "Your account has been deactivated. Please contact support.",
                }
            ),
            403,
        )

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()

    return jsonify(
        {"success": True, "user": user.to_dict(), "token": _token_response(user)}
    )


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    # Drafts belong to the signed-in user
    session.pop(DRAFT_SESSION_KEY, None)
    logout_user()
    return jsonify({"success": True})


@bp.route("/token", methods=["POST"])
@limiter.limit("30 per hour")
def token():
    """Issue a bearer token for the session user, or for posted credentials"""
    if current_user.is_authenticated:
        return jsonify({"success": True, **_token_response(current_user)})

    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    user = User.query.filter_by(username=form.username.data).first()
    if not user or not user.check_password(form.password.data) or not user.is_active:
        return jsonify({"success": False, "error": "Invalid username or password"}), 401

    return jsonify({"success": True, **_token_response(user)})


@bp.route("/me")
@login_required
def me():
    profile = UserProfile.get_or_create(current_user)
    db.session.commit()
    return jsonify(
        {"success": True, "user": current_user.to_dict(), "profile": profile.to_dict()}
    )


@bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    form = ChangePasswordForm()
    if not form.validate_on_submit():
        return jsonify({"success": False, "errors": form_errors(form)}), 400

    if not current_user.check_password(form.current_password.data):
        return jsonify({"success": False, "error": "Current password is incorrect"}), 400

    current_user.set_password(form.new_password.data)
    db.session.commit()
    return jsonify({"success": True})


@bp.route("/csrf-token")
def csrf_token():
    """Token for the X-CSRFToken header on session-authenticated writes"""
    return jsonify({"csrf_token": generate_csrf()})
