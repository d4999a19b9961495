"""
Gunicorn configuration for the Sileme API.

Run with:  gunicorn -c gunicorn.conf.py sileme.main:app

Env vars that override defaults:
  PORT     TCP port to bind
  WORKERS  number of worker processes (default: 1)

Each worker starts its own scheduler. Run one worker with
SCHEDULER_ENABLED=true and the rest with it off, or keep WORKERS=1.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))

# ASGI workers: WebSockets and the scheduler both need the event loop.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# WebSocket clients hold connections open; only stuck workers are killed.
timeout = 120

# stdout only
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Lets the lifespan hook stop the scheduler before exit.
graceful_timeout = 30

wsgi_app = "sileme.main:app"
