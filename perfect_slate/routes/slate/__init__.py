from flask import Blueprint

bp = Blueprint("slate", __name__)

from perfect_slate.routes.slate import routes  # noqa: E402, F401
