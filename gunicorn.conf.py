import os

# Bind Gunicorn to a TCP address or a Unix domain socket for local Nginx proxying
bind = os.getenv("GUNICORN_BIND", "127.0.0.1:5000")
# Number of worker processes (Socket.IO requires 1 unless SOCKETIO_MESSAGE_QUEUE is set)
workers = int(os.getenv("WEB_WORKERS", "1"))
# Time to gracefully stop workers on restart/shutdown
graceful_timeout = 5
# Use Gevent WebSocket worker to support Flask-SocketIO
worker_class = "geventwebsocket.gunicorn.workers.GeventWebSocketWorker"
# Avoid importing the app in the master process (gevent monkey-patching order)
preload_app = False
# WSGI app module path for Gunicorn to load
wsgi_app = "wsgi:app"

# Kill and restart workers that block beyond this many seconds
timeout = 120
# File creation mask for logs and socket to be group-readable/writable
umask = 0o007
# Logging level for Gunicorn (defaults to INFO, can be overridden via LOG_LEVEL env var)
loglevel = os.getenv("LOG_LEVEL", "info").lower()
# Capture stdout/stderr of workers into Gunicorn logs
capture_output = True
# Enable reload on code changes for development
reload = os.getenv("GUNICORN_RELOAD", "false").lower() in ("true", "1", "yes", "on")
