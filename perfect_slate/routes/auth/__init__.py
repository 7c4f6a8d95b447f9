from flask import Blueprint

bp = Blueprint("auth", __name__)

from perfect_slate.routes.auth import routes  # noqa: E402, F401
