"""
Production Server Configuration

Run the analytics API with Uvicorn workers under Gunicorn:
    gunicorn marketplace.main:app -c gunicorn.conf.py
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", f"{os.getenv('API_HOST', '0.0.0.0')}:{os.getenv('API_PORT', '8000')}")
backlog = 2048

# Worker processes; reports are CPU bound over a full snapshot, so keep the pool near the core count
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000
max_requests_jitter = 500
timeout = 120
keepalive = 5
graceful_timeout = 30

proc_name = "marketplace-analytics-api"
daemon = False

# Logging; application records go through structlog on stdout
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("Marketplace analytics API ready on %s", bind)


def post_fork(server, worker):
    """Called after a worker has been forked."""
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def worker_abort(worker):
    """Called when worker receives SIGABRT signal, usually a report timeout."""
    worker.log.warning("Worker aborted (pid: %s); a report exceeded %ss", worker.pid, timeout)
