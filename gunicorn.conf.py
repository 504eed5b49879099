"""
Production Server Configuration

Run FastAPI with Uvicorn workers under Gunicorn for production deployment.

Dashboards, realtime sources and the export registry live in process memory,
so the default is a single worker. Raise WORKERS only behind sticky sessions.
"""

import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 0
timeout = 120
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "education-analytics-api"

# Server mechanics
daemon = False
pidfile = "/tmp/gunicorn.pid"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("Education analytics API ready on %s", bind)
