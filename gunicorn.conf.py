"""
Gunicorn configuration for the Home History API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)

Each worker owns its own address enricher, so the process-local address
cache is per worker; the persistent `address_cache` table is shared.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# A backfill request holds its connection for the whole batch
# (~1.1s per property per slot), so allow long requests.
timeout = 300

# Structured logging — stdout only; the app emits JSON lines.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Graceful restart: wait up to 30 s for in-flight requests (and pending
# cache write-throughs) to finish.
graceful_timeout = 30
