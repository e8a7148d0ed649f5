"""
Gunicorn configuration for the Stifle sync API.

Tuned for Railway / Render single-instance containers.
Env vars that override defaults:
  PORT       — TCP port to bind (Railway sets this automatically)
  WORKERS    — number of worker processes (default: 2)
  LOG_LEVEL  — shared with the app's own logging (default: info)

Score recompute runs inside the sync request, so each worker handles one
sync at a time; concurrent syncs for one user are safe across workers
because ledger inserts and score upserts are single atomic statements.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# 2 workers is safe for a 512 MB container.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

# Mobile clients sync in short bursts; keep connections briefly.
keepalive = 5

timeout = 120

# stdout only (Railway / Render capture it automatically).
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
