# Entry point for Gunicorn (wsgi_app = "wsgi:app") and local runs
import os

from synctube import create_app
from synctube.extensions import socketio

app = create_app()


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
