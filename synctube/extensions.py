from __future__ import annotations

from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

# Shared extension instances, bound to the app inside create_app()
db = SQLAlchemy()
socketio = SocketIO()
