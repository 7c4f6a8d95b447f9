# Eventlet monkey patching MUST be first before any other imports
import eventlet
eventlet.monkey_patch()

from perfect_slate import create_app, db, socketio  # noqa: E402
from perfect_slate.models import Contest, Game, Pick, Slate, Team, User, UserProfile  # noqa: E402

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "UserProfile": UserProfile,
        "Contest": Contest,
        "Game": Game,
        "Pick": Pick,
        "Slate": Slate,
        "Team": Team,
    }


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
